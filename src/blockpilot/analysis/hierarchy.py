"""Flattened hierarchy view of a block tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..editor.document_model import Block, BlockDocument

__all__ = ["HierarchyEntry", "HierarchyIndex", "analyze_hierarchy"]


@dataclass(slots=True)
class HierarchyEntry:
    """Position of one block inside the tree.

    ``level`` is the nesting depth (0 for top-level blocks) and ``index`` is the
    block's ordinal among its siblings.
    """

    block_id: str
    level: int
    parent_id: str | None
    index: int
    block: Block = field(repr=False, compare=False)


def analyze_hierarchy(blocks: BlockDocument | Sequence[Block]) -> list[HierarchyEntry]:
    """Return one entry per block in pre-order."""

    roots = blocks.blocks if isinstance(blocks, BlockDocument) else blocks
    entries: list[HierarchyEntry] = []
    # Explicit stack keeps deep trees off the interpreter's recursion limit.
    stack: list[tuple[Block, int, str | None, int]] = [
        (block, 0, None, position) for position, block in reversed(list(enumerate(roots)))
    ]
    while stack:
        block, level, parent_id, index = stack.pop()
        entries.append(HierarchyEntry(block.id, level, parent_id, index, block))
        for position in range(len(block.children) - 1, -1, -1):
            stack.append((block.children[position], level + 1, block.id, position))
    return entries


class HierarchyIndex:
    """Constant-time lookups over :func:`analyze_hierarchy` output."""

    def __init__(self, entries: Iterable[HierarchyEntry]) -> None:
        self._entries = list(entries)
        self._by_id = {entry.block_id: entry for entry in self._entries}
        self._order = {entry.block_id: position for position, entry in enumerate(self._entries)}
        self._children: dict[str | None, list[str]] = {}
        for entry in self._entries:
            self._children.setdefault(entry.parent_id, []).append(entry.block_id)

    @classmethod
    def build(cls, blocks: BlockDocument | Sequence[Block]) -> "HierarchyIndex":
        return cls(analyze_hierarchy(blocks))

    @property
    def entries(self) -> list[HierarchyEntry]:
        return list(self._entries)

    @property
    def max_depth(self) -> int:
        return max((entry.level for entry in self._entries), default=0)

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, block_id: str) -> HierarchyEntry | None:
        return self._by_id.get(block_id)

    def position(self, block_id: str) -> int | None:
        """Return the pre-order position of ``block_id``."""

        return self._order.get(block_id)

    def root_ids(self) -> list[str]:
        return list(self._children.get(None, ()))

    def children_of(self, block_id: str) -> list[str]:
        return list(self._children.get(block_id, ()))

    def ancestors_of(self, block_id: str) -> list[str]:
        """Return ancestor ids, nearest parent first."""

        ancestors: list[str] = []
        entry = self._by_id.get(block_id)
        while entry is not None and entry.parent_id is not None:
            ancestors.append(entry.parent_id)
            entry = self._by_id.get(entry.parent_id)
        return ancestors

    def descendants_of(self, block_id: str) -> list[str]:
        result: list[str] = []
        pending = list(reversed(self.children_of(block_id)))
        while pending:
            current = pending.pop()
            result.append(current)
            pending.extend(reversed(self.children_of(current)))
        return result

    def path_to(self, block_id: str) -> list[str]:
        return list(reversed(self.ancestors_of(block_id))) + [block_id]
