from sqlalchemy import Column, DateTime, ForeignKey, PrimaryKeyConstraint, String

from quill.core.database import Base, utcnow


class Follows(Base):
    """
    Directed follow edge: follower_id follows following_id.

    The (follower_id, following_id) pair is the primary key, so an edge can
    exist only once. Deleting either user removes the edge.
    """
    __tablename__ = "follows"
    __table_args__ = (PrimaryKeyConstraint("follower_id", "following_id", name="pk_follows"),)

    follower_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    following_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
