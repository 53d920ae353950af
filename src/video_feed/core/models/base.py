"""SQLAlchemy declarative base and shared mixins for all ORM models.

Provides:
- Base: the DeclarativeBase subclass all models inherit from
- TimestampMixin: created_at / updated_at columns

Column types are chosen to work on PostgreSQL (production) and SQLite
(the in-memory test database): ``sa.Uuid`` instead of the PostgreSQL-only
``UUID`` type, and ``JSONB`` only as a PostgreSQL variant of ``sa.JSON``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONVariant = sa.JSON().with_variant(JSONB(), "postgresql")
"""JSON column type that becomes JSONB on PostgreSQL."""


class UTCDateTime(sa.TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC.

    Values are converted to UTC before binding.  Naive values read back
    (SQLite drops the offset) are tagged as UTC.
    """

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: sa.Dialect) -> Any:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=UTC)
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value: Any, dialect: sa.Dialect) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Shared declarative base for all Video Feed models."""

    type_annotation_map = {
        uuid.UUID: sa.Uuid(as_uuid=True),
        datetime: UTCDateTime(),
    }


class TimestampMixin:
    """Adds created_at and updated_at columns.

    The repository sets both explicitly on insert; the server defaults only
    cover rows written outside the application (manual SQL, fixtures).
    """

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )
