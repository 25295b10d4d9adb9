"""
Rate Limit Models

One row per (identifier, action) pair, holding the current window.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from paperly.modules.shared import BaseModel


class RateLimit(BaseModel):
    """Attempt counter for an identifier (email or IP) performing an action."""

    __tablename__ = "rate_limits"

    identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    blocked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("identifier", "action", name="uq_rate_limits_identifier_action"),
    )

    def __repr__(self) -> str:
        return f"<RateLimit({self.action}:{self.identifier} count={self.count})>"
