import uuid
from datetime import datetime
from sqlalchemy import String, Integer, BigInteger, DateTime, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.shared.db.base import Base


class AccessLog(Base):
    """
    One CDN edge request, as written by the edge log pipeline.

    Rows are append-only. edge_result is a free-form string:
    legacy pipelines wrote numeric status codes there, so it cannot be an enum.
    """
    __tablename__ = "bandwidth_logs"

    # BIGSERIAL on Postgres, rowid alias on SQLite
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    # Only populated for records written after asset linking shipped
    asset_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    path: Mapped[str] = mapped_column(String, nullable=False)
    bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    request_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    edge_result: Mapped[str | None] = mapped_column(String, nullable=True)

    distribution: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String, nullable=True)
    country: Mapped[str | None] = mapped_column(String, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)  # naive UTC

    __table_args__ = (
        Index("ix_bandwidth_logs_asset_ts", "asset_id", "timestamp"),
        Index("ix_bandwidth_logs_path_ts", "path", "timestamp"),
    )
