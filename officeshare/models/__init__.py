from .organization import Membership, Notice, Organization
from .share_link import ShareLink
from .user import User

__all__ = ["Membership", "Notice", "Organization", "ShareLink", "User"]
