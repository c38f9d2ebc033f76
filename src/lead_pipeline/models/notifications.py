"""Outbound notification targets: alert channels and client webhooks."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class NotificationChannel(Base):
    """SQLAlchemy model for an internal alert channel (Slack, Teams, generic).

    Attributes:
        id: Unique identifier (UUID).
        name: Display name.
        channel_type: slack, teams, webhook.
        webhook_url: Incoming webhook URL.
        is_active: Whether the channel receives alerts.
        notify_on_high_value_lead: Subscribe to hot lead alerts.
        last_triggered_at: Last successful or attempted delivery.
        failure_count: Transport failures since creation.
    """

    __tablename__ = "notification_channels"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_type: Mapped[str] = mapped_column(String(50), nullable=False, default="webhook")
    webhook_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_on_high_value_lead: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<NotificationChannel(id={self.id!r}, name={self.name!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "channel_type": self.channel_type,
            "webhook_url": self.webhook_url,
            "is_active": self.is_active,
            "notify_on_high_value_lead": self.notify_on_high_value_lead,
            "last_triggered_at": (
                self.last_triggered_at.isoformat() if self.last_triggered_at else None
            ),
            "failure_count": self.failure_count,
        }


class ClientWebhook(Base):
    """A client-registered endpoint that receives signed lead payloads.

    ``secret_hash`` is the shared HMAC secret; when empty, deliveries are sent
    unsigned.
    """

    __tablename__ = "client_webhooks"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    webhook_url: Mapped[str] = mapped_column(Text, nullable=False)
    secret_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<ClientWebhook(id={self.id!r}, active={self.is_active!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "webhook_url": self.webhook_url,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
