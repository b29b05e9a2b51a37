"""SQLAlchemy models."""
from quill.models.bookmark import Bookmark
from quill.models.follow import Follows
from quill.models.post import Post, Tag, tags_on_posts
from quill.models.user import Account, Gender, Profile, Role, User

__all__ = [
    "Account",
    "Bookmark",
    "Follows",
    "Gender",
    "Post",
    "Profile",
    "Role",
    "Tag",
    "User",
    "tags_on_posts",
]
