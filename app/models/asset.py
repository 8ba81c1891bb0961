import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, BigInteger, DateTime, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.shared.db.base import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column in this schema stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Asset(Base):
    """
    Uploaded media object. Rows are written by the asset-management service;
    analytics only reads owner_id, s3_key and the display fields.
    """
    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    name: Mapped[str] = mapped_column(String, nullable=False)
    s3_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)  # "{scope}/..."
    cloudfront_url: Mapped[str] = mapped_column(String, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)

    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_assets_owner_deleted", "owner_id", "is_deleted"),
        Index("ix_assets_created_at", "created_at"),
    )
