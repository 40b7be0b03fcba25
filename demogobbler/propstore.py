"""Sparse stores of entity property values, kept in ascending index order."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

__all__ = ["PropArray", "PropNode", "PropList"]


@dataclass(eq=False)
class PropNode:
    """A stored property value at ``index``; ``next`` links list nodes."""

    index: int
    value: Any = None
    next: Optional["PropNode"] = field(default=None, repr=False)


class PropArray:
    """Fixed-size store of up to ``prop_count`` property slots."""

    def __init__(self, prop_count: int) -> None:
        self.prop_count = prop_count
        self._slots: list[Optional[PropNode]] = [None] * prop_count

    def get(self, index: int) -> tuple[PropNode, bool]:
        """Return the slot for ``index`` and whether it was just created."""
        if not 0 <= index < self.prop_count:
            raise IndexError(f"prop index {index} out of range for {self.prop_count} props")
        slot = self._slots[index]
        if slot is not None:
            return slot, False
        slot = self._slots[index] = PropNode(index)
        return slot, True

    def __iter__(self) -> Iterator[PropNode]:
        """Yield the slots that exist, lowest index first."""
        return (slot for slot in self._slots if slot is not None)


class PropList:
    """Sorted singly linked list of property nodes behind a sentinel head."""

    def __init__(self) -> None:
        self.head = PropNode(-1)

    def get(
        self, index: int, initial_guess: Optional[PropNode] = None
    ) -> tuple[PropNode, bool]:
        """Find or insert the node for ``index``; the walk starts at ``initial_guess``.

        Returns the node and whether it was just inserted.
        """
        current = initial_guess or self.head
        while current.next is not None and current.next.index < index:
            current = current.next

        if current.next is not None and current.next.index == index:
            return current.next, False

        node = PropNode(index, next=current.next)
        current.next = node
        return node, True

    def next(self, node: PropNode) -> Optional[PropNode]:
        return node.next

    def __len__(self) -> int:
        """Number of stored props, not counting the sentinel head."""
        count = 0
        node = self.head.next
        while node is not None:
            count += 1
            node = node.next
        return count