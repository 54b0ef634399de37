"""Small helpers shared by the processor and the orchestrator."""

from typing import List, Sequence, TypeVar

T = TypeVar("T")


def chunk_list(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Split items into consecutive chunks of at most ``size``.

    Example:
        >>> chunk_list([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]
