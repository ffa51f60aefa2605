"""Shared ID generator for all domain and ORM models."""

from __future__ import annotations

import uuid


def generate_id() -> str:
    """Return a new random UUID string (v4)."""
    return str(uuid.uuid4())
