"""
User model — the authentication identity.

Each User is a login credential (email + hashed password) with a role.
The credit balance lives on the user's Account, not here:

  - User handles authentication (who are you?) and authorization (what role?)
  - Account handles the credit ledger (how many credits do you hold?)

Roles:
  - ADMIN: Manages function costs, recharges, cashbox expenses, packages
  - DOCTOR: Provides paid services and receives commissions
  - PATIENT: Buys credits and pays for consultations
  - RESEARCHER / VISITOR: Limited access; may still hold credits

The password is stored as an Argon2id hash, never in plaintext.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tmc_ledger.database import Base


class UserRole(str, enum.Enum):
    """
    Role a user holds within the portal.

    Inherits from str so the value serializes naturally to JSON.
    """
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"
    RESEARCHER = "researcher"
    VISITOR = "visitor"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Login identifier, unique and indexed for fast lookups
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.VISITOR,
        nullable=False,
    )

    # Soft-disable: blocked users can't log in but their ledger is preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    account: Mapped["Account"] = relationship(
        back_populates="user",
        uselist=False,
    )
