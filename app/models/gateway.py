"""Gateway admin configuration and the shared rotation counter."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

PLATFORM_SCOPE = "platform"


class GatewayConfig(Base):
    """One row per known gateway: whether it is enabled and its rotation limit.

    ``transaction_limit`` of None means "use the configured default".
    """

    __tablename__ = "gateway_configs"

    name: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    transaction_limit: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<GatewayConfig(name={self.name!r}, enabled={self.enabled}, "
            f"limit={self.transaction_limit})>"
        )


class GatewayRotationState(Base):
    """Persisted rotation counter, one row per scope (platform-wide by default).

    ``version_id`` is the optimistic-concurrency column: a flush against a
    row someone else already bumped raises ``StaleDataError``.
    """

    __tablename__ = "gateway_rotation_states"

    scope: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=PLATFORM_SCOPE,
    )
    active_gateway: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    transaction_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    rotation_cycle: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    version_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<GatewayRotationState(scope={self.scope!r}, "
            f"active={self.active_gateway!r}, count={self.transaction_count})>"
        )
