import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from officeshare.core.database import Base


class ShareLink(Base):
    """One shared file and the public link that resolves to it.

    ``views`` is only ever changed by
    :func:`officeshare.services.view_accounting.try_consume_view`.
    """

    __tablename__ = "share_links"
    __table_args__ = (
        CheckConstraint("max_views >= 1", name="ck_share_links_max_views_positive"),
        CheckConstraint("views >= 0", name="ck_share_links_views_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    link_id = Column(String(64), unique=True, index=True, nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="SET NULL"), index=True, nullable=True)
    object_path = Column(String, nullable=False)
    file_name = Column(String, index=True, nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    max_views = Column(Integer, nullable=False, default=1)
    views = Column(Integer, nullable=False, default=0)
