"""Context window selection by memory scope."""

from typing import Sequence, TypeVar

from .models import MemoryScope

T = TypeVar("T")

# Number of trailing messages visible per scope; None means everything
CONTEXT_WINDOWS: dict[MemoryScope, int | None] = {
    MemoryScope.LOCAL: 5,
    MemoryScope.SESSION: 20,
    MemoryScope.CROSS_SESSION: None,
}

DEFAULT_WINDOW = 10


def select_context(history: Sequence[T], scope: MemoryScope | str | None) -> list[T]:
    """Return the part of the history an agent with this scope may see.

    Args:
        history: Full transcript, oldest first
        scope: The agent's memory scope; unknown values use the default window

    Returns:
        A new list holding the trailing slice, in original order
    """
    try:
        window = CONTEXT_WINDOWS.get(MemoryScope(scope), DEFAULT_WINDOW)
    except ValueError:
        window = DEFAULT_WINDOW

    if window is None:
        return list(history)
    return list(history[-window:]) if history else []
