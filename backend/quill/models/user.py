import enum
import uuid

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from quill.core.database import Base, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class User(Base):
    """
    Application user.

    Email is stored lower-cased and is globally unique. password is a bcrypt
    hash and is NULL for accounts created through an external provider; such
    a user always has at least one row in accounts.
    """
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), nullable=False, index=True)
    password = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    role = Column(Enum(Role, name="role"), nullable=False, default=Role.USER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Child rows are removed by ON DELETE CASCADE in the database
    profile = relationship("Profile", back_populates="user", uselist=False, passive_deletes=True)
    accounts = relationship("Account", back_populates="user", passive_deletes=True)
    posts = relationship("Post", back_populates="author", passive_deletes=True)


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("mobile_number", name="uq_profiles_mobile_number"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    mobile_number = Column(String(32), nullable=True)
    gender = Column(Enum(Gender, name="gender"), nullable=True)
    birth_of_date = Column(Date, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    user = relationship("User", back_populates="profile")


class Account(Base):
    """Link between a user and an identity at an external provider (e.g. google)"""
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("provider_type", "provider_id", name="uq_accounts_provider"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_type = Column(String(32), nullable=False)
    provider_id = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="accounts")
