"""Geradores de identificadores."""

from __future__ import annotations

import uuid


def new_session_id() -> str:
    """Gera um session_id único."""

    return str(uuid.uuid4())


def conversion_event_id(session_id: str, prefix: str = "kinbox") -> str:
    """Monta o event_id estável usado pela Meta para deduplicar o Purchase."""

    return f"{prefix}-{session_id}"
