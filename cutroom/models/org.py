"""Org model - the tenant root and owner of the storage counter."""

from __future__ import annotations

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin


class Org(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "org"

    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    # Reserved/used original bytes. Only ever changed through QuotaLedger
    # (conditional increment / clamped decrement / reconcile).
    storage_used_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Relationships
    videos: Mapped[list["Video"]] = relationship(  # noqa: F821
        back_populates="org", cascade="all, delete-orphan"
    )
    galleries: Mapped[list["Gallery"]] = relationship(  # noqa: F821
        back_populates="org", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Org {self.slug!r}>"
