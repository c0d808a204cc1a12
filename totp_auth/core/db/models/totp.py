"""
TOTP record model for tracking issued one-time codes.

"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from totp_auth.core.db.models.base import BaseModel


class TOTPRecordModel(BaseModel):
    """
    Model for storing issued TOTP codes.

    Rows are keyed by the signed OTP token, never by the code itself.
    Records are deactivated once consumed or superseded and are not
    deleted by the authentication flow.

    Attributes:
        hash: The signed OTP token (unique, indexed for lookups).
        active: Whether the code can still be redeemed.
        attempts: Number of failed verification attempts.
        expires_at: When the code expires.
    """

    __tablename__ = "totp_records"

    hash: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        unique=True,
        index=True,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=True,
    )


__all__ = ["TOTPRecordModel"]
