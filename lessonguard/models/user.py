"""
SQLAlchemy model for users table.

Users are created by the identity provider and the payment system; this
service only reads identity and subscription state for entitlement checks.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional
from sqlalchemy import String, Boolean, DateTime, Index, Enum as SQLAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from lessonguard.database import Base, DB_SCHEMA


class UserRole(str, Enum):
    """User role enumeration."""
    USER = "user"
    ADMIN = "admin"


class SubscriptionStatus(str, Enum):
    """Subscription state as maintained by the payment system."""
    FREE = "FREE"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


if TYPE_CHECKING:
    from lessonguard.models.user_device import UserDevice


class User(Base):
    """
    User model for identity and subscription lookups.

    Attributes:
        id: Unique identifier (UUID4)
        email: User's email address (unique)
        role: user or admin (admins bypass subscription checks)
        subscription_status: Subscription state from the payment system
        subscription_end_date: End of paid period (None = lifetime)
        is_active: Whether the user account is active
        created_at: Account creation timestamp (UTC)
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true"
    )

    role: Mapped[UserRole] = mapped_column(
        SQLAEnum(UserRole, name="userrole", schema=DB_SCHEMA, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=UserRole.USER,
        server_default="user"
    )

    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        SQLAEnum(SubscriptionStatus, name="subscriptionstatus", schema=DB_SCHEMA),
        nullable=False,
        default=SubscriptionStatus.FREE,
        server_default="FREE"
    )

    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    devices: Mapped[list["UserDevice"]] = relationship(
        "UserDevice",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    __table_args__ = (
        Index("idx_users_subscription_status", "subscription_status"),
        {"schema": DB_SCHEMA}
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, subscription={self.subscription_status})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def has_active_subscription(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the user may access premium content.

        Admins always qualify. An ACTIVE subscription without an end date is
        a lifetime subscription.
        """
        if self.is_admin:
            return True
        if self.subscription_status != SubscriptionStatus.ACTIVE:
            return False
        if self.subscription_end_date is None:
            return True
        now = now or datetime.now(timezone.utc)
        return self.subscription_end_date > now
