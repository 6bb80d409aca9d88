"""Declarative base and shared column mixins for all ORM models."""

from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Constraint names are generated from these templates.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class AuditMixin:
    """Creation/modification timestamps plus the actor that performed them.

    Actors are passed explicitly by the service layer on every write.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_modified_by: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )

    def stamp_created(self, actor: str) -> None:
        self.created_by = actor
        self.last_modified_by = actor

    def stamp_modified(self, actor: str) -> None:
        self.last_modified_by = actor
