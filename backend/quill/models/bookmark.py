from sqlalchemy import Column, DateTime, ForeignKey, PrimaryKeyConstraint, String
from sqlalchemy.orm import relationship

from quill.core.database import Base, utcnow


class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (PrimaryKeyConstraint("user_id", "post_id", name="pk_bookmarks"),)

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    post = relationship("Post")
