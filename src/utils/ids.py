"""Opaque identifiers for materials and questions."""

from uuid import uuid4


def new_id() -> str:
    """Return a fresh random identifier. Identifiers are never reused."""
    return str(uuid4())
