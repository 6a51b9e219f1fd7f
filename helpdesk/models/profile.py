from __future__ import annotations

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.models.base import Base, TimestampMixin

ROLES = ("user", "agent", "admin")
STAFF_ROLES = ("agent", "admin")


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'agent', 'admin')", name="ck_profiles_role"),
    )

    # One profile per identity: the primary key is the account id.
    id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255))
    avatar_url: Mapped[str | None] = mapped_column(String(1024))
    role: Mapped[str] = mapped_column(String(20), default="user", index=True)
    department: Mapped[str | None] = mapped_column(String(100))

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
