"""Collaborators injected into tree operations: id generation and the clock."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TreeContext:
    """Explicit context for one caller. Tests swap in deterministic ids and clocks."""

    new_id: Callable[[], str] = field(default=_new_id)
    now: Callable[[], datetime] = field(default=_now)


DEFAULT_CONTEXT = TreeContext()
