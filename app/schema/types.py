"""Column types shared by the ORM models."""

from __future__ import annotations

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on Postgres, plain JSON elsewhere so repositories also run against SQLite.
JSONPayload = JSON().with_variant(JSONB(), "postgresql")
