"""
Durable respawn state for managed entities.

One row per entity, created or updated on death or location update and
deleted on successful respawn or explicit cancellation.
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class RespawnRecordRow(Base):
    """
    Respawn record for one managed entity.

    The last location is stored as flat columns; a row with eligible=True
    always has last_world populated.
    """

    __tablename__ = "managed_entity_respawn"
    __table_args__ = {"extend_existing": True}

    entity_id: Mapped[str] = mapped_column(String(length=64), primary_key=True)
    entity_name: Mapped[str] = mapped_column(String(length=64), nullable=False, index=True)

    last_world: Mapped[str | None] = mapped_column(String(length=128), nullable=True)
    last_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_y: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_z: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_yaw: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_pitch: Mapped[float | None] = mapped_column(Float, nullable=True)

    death_reason: Mapped[str | None] = mapped_column(String(length=32), nullable=True)
    eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    last_respawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return f"<RespawnRecordRow(entity_id={self.entity_id}, name={self.entity_name}, eligible={self.eligible})>"
