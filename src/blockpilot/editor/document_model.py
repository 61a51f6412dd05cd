"""Block tree dataclasses and the mutable document they live in."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Literal, Mapping, Sequence

__all__ = [
    "InlineSpan",
    "TableContent",
    "Block",
    "BlockDocument",
    "DocumentInvariantError",
    "Placement",
    "SPECIAL_BLOCK_TYPES",
    "new_block_id",
]

LOGGER = logging.getLogger(__name__)

Placement = Literal["before", "after"]
DocumentListener = Callable[["BlockDocument"], None]

SPECIAL_BLOCK_TYPES: frozenset[str] = frozenset({"table", "image", "file"})


def new_block_id() -> str:
    return uuid.uuid4().hex


class DocumentInvariantError(ValueError):
    """Raised when a mutation would leave the block tree in an invalid state."""


# ----------------------------------------------------------------------
# Content payloads
# ----------------------------------------------------------------------


@dataclass(slots=True)
class InlineSpan:
    """A run of text sharing one set of styles."""

    text: str
    styles: dict[str, Any] = field(default_factory=dict)
    href: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.href is not None:
            return {
                "type": "link",
                "href": self.href,
                "content": [{"type": "text", "text": self.text, "styles": dict(self.styles)}],
            }
        return {"type": "text", "text": self.text, "styles": dict(self.styles)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InlineSpan":
        if payload.get("type") == "link":
            inner = payload.get("content") or []
            if isinstance(inner, str):
                return cls(text=inner, href=str(payload.get("href") or ""))
            text = "".join(str(item.get("text", "")) for item in inner if isinstance(item, Mapping))
            styles = dict(inner[0].get("styles") or {}) if inner and isinstance(inner[0], Mapping) else {}
            return cls(text=text, styles=styles, href=str(payload.get("href") or ""))
        return cls(text=str(payload.get("text", "")), styles=dict(payload.get("styles") or {}))


@dataclass(slots=True)
class TableContent:
    """Structured payload of a ``table`` block: rows of plain-text cells."""

    rows: list[list[str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tableContent", "rows": [{"cells": list(row)} for row in self.rows]}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TableContent":
        rows: list[list[str]] = []
        for row in payload.get("rows") or []:
            cells = row.get("cells", []) if isinstance(row, Mapping) else row
            rows.append([_cell_text(cell) for cell in cells])
        return cls(rows=rows)


def _cell_text(cell: Any) -> str:
    if isinstance(cell, str):
        return cell
    if isinstance(cell, Mapping):
        return str(cell.get("text", ""))
    if isinstance(cell, Sequence):
        return "".join(_cell_text(item) for item in cell)
    return str(cell)


@dataclass(slots=True)
class Block:
    """A node of the document tree."""

    type: str
    content: list[InlineSpan] | TableContent | None = field(default_factory=list)
    children: list["Block"] = field(default_factory=list)
    props: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_block_id)

    @classmethod
    def paragraph(cls, text: str = "", **props: Any) -> "Block":
        spans = [InlineSpan(text)] if text else []
        return cls(type="paragraph", content=spans, props=dict(props))

    @property
    def level(self) -> int:
        value = self.props.get("level")
        return value if isinstance(value, int) else 0

    def iter_tree(self) -> Iterator["Block"]:
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, TableContent):
            content: Any = self.content.to_dict()
        elif self.content is None:
            content = None
        else:
            content = [span.to_dict() for span in self.content]
        return {
            "id": self.id,
            "type": self.type,
            "props": copy.deepcopy(self.props),
            "content": content,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Block":
        raw_content = payload.get("content")
        content: list[InlineSpan] | TableContent | None
        if raw_content is None:
            content = None
        elif isinstance(raw_content, Mapping):
            content = TableContent.from_dict(raw_content)
        elif isinstance(raw_content, str):
            content = [InlineSpan(raw_content)] if raw_content else []
        else:
            content = [InlineSpan.from_dict(item) for item in raw_content if isinstance(item, Mapping)]
        block_id = payload.get("id")
        return cls(
            id=str(block_id) if block_id else new_block_id(),
            type=str(payload.get("type") or "paragraph"),
            content=content,
            children=[cls.from_dict(child) for child in payload.get("children") or []],
            props=dict(payload.get("props") or {}),
        )


# ----------------------------------------------------------------------
# Document
# ----------------------------------------------------------------------


class BlockDocument:
    """Mutable block tree that rejects mutations breaking its invariants.

    The tree is acyclic, every block id is unique, and at least one top-level
    block is always present. An empty document holds a single empty paragraph.
    """

    def __init__(self, blocks: Iterable[Block] | None = None, *, document_id: str | None = None) -> None:
        self.document_id = document_id or new_block_id()
        initial = list(blocks or [])
        if not initial:
            initial = [Block.paragraph()]
        self._check_tree(initial)
        self._blocks: list[Block] = initial
        self._listeners: list[DocumentListener] = []
        self._version = 1
        self._batch_depth = 0
        self._batch_dirty = False
        self._reindex()

    @classmethod
    def from_list(cls, payload: Sequence[Mapping[str, Any]] | None, *, document_id: str | None = None) -> "BlockDocument":
        blocks = [Block.from_dict(item) for item in payload or [] if isinstance(item, Mapping)]
        return cls(blocks, document_id=document_id)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def blocks(self) -> tuple[Block, ...]:
        return tuple(self._blocks)

    @property
    def version(self) -> int:
        return self._version

    def get_block(self, block_id: str) -> Block | None:
        return self._index.get(block_id)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._index

    def parent_of(self, block_id: str) -> Block | None:
        parent_id = self._parents.get(block_id)
        return self._index.get(parent_id) if parent_id else None

    def siblings_of(self, block_id: str) -> list[Block]:
        parent = self.parent_of(block_id)
        return parent.children if parent is not None else self._blocks

    def index_of(self, block_id: str) -> int:
        for position, block in enumerate(self.siblings_of(block_id)):
            if block.id == block_id:
                return position
        raise KeyError(block_id)

    def iter_blocks(self) -> Iterator[Block]:
        for block in self._blocks:
            yield from block.iter_tree()

    def block_count(self) -> int:
        return len(self._index)

    def top_level_ids(self) -> list[str]:
        return [block.id for block in self._blocks]

    def is_empty(self) -> bool:
        """Return ``True`` for the single-empty-paragraph document."""

        if len(self._blocks) != 1:
            return False
        only = self._blocks[0]
        if only.type != "paragraph" or only.children:
            return False
        return not only.content or all(not span.text for span in only.content)  # type: ignore[union-attr]

    def to_list(self) -> list[dict[str, Any]]:
        return [block.to_dict() for block in self._blocks]

    def content_hash(self) -> str:
        body = json.dumps(self.to_list(), sort_keys=True, ensure_ascii=False)
        return hashlib.sha1(body.encode("utf-8")).hexdigest()

    def copy(self) -> "BlockDocument":
        return BlockDocument(copy.deepcopy(self._blocks), document_id=self.document_id)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: DocumentListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: DocumentListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert_blocks(self, blocks: Sequence[Block], reference_id: str, placement: Placement = "after") -> list[str]:
        """Insert *blocks* next to ``reference_id`` and return the new ids."""

        if not blocks:
            return []
        self._require(reference_id)
        new_blocks = list(blocks)

        def mutate(tree: list[Block]) -> None:
            siblings, position = _locate(tree, reference_id)
            offset = position + 1 if placement == "after" else position
            siblings[offset:offset] = new_blocks

        self._apply(mutate)
        return [block.id for block in new_blocks]

    def replace_blocks(self, block_ids: Sequence[str], blocks: Sequence[Block]) -> list[str]:
        """Put *blocks* where the first of ``block_ids`` sits and drop the rest."""

        targets = self._normalize_targets(block_ids)
        if not targets:
            raise DocumentInvariantError("replace_blocks requires at least one existing block id")
        new_blocks = list(blocks)

        def mutate(tree: list[Block]) -> None:
            siblings, position = _locate(tree, targets[0])
            siblings[position:position + 1] = new_blocks
            for block_id in targets[1:]:
                _detach(tree, block_id)

        self._apply(mutate)
        return [block.id for block in new_blocks]

    def remove_blocks(self, block_ids: Sequence[str]) -> list[str]:
        targets = self._normalize_targets(block_ids)

        def mutate(tree: list[Block]) -> None:
            for block_id in targets:
                _detach(tree, block_id)

        if targets:
            self._apply(mutate)
        return targets

    def update_block(
        self,
        block_id: str,
        *,
        content: list[InlineSpan] | TableContent | None | object = ...,
        props: Mapping[str, Any] | None = None,
        type: str | None = None,
    ) -> Block:
        self._require(block_id)

        def mutate(tree: list[Block]) -> None:
            siblings, position = _locate(tree, block_id)
            block = siblings[position]
            if content is not ...:
                block.content = content  # type: ignore[assignment]
            if props is not None:
                block.props.update(props)
            if type is not None:
                block.type = type

        self._apply(mutate)
        return self._index[block_id]

    def replace_document(self, blocks: Sequence[Block]) -> list[str]:
        new_blocks = list(blocks)

        def mutate(tree: list[Block]) -> None:
            tree[:] = new_blocks

        self._apply(mutate)
        return [block.id for block in new_blocks]

    @contextmanager
    def atomic(self) -> Iterator["BlockDocument"]:
        """Group mutations into one change, rolled back if the body raises."""

        saved = copy.deepcopy(self._blocks)
        self._batch_depth += 1
        try:
            yield self
        except BaseException:
            self._blocks = saved
            self._reindex()
            if self._batch_depth == 1:
                self._batch_dirty = False
            raise
        finally:
            self._batch_depth -= 1
        if self._batch_depth == 0 and self._batch_dirty:
            self._batch_dirty = False
            self._commit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, mutate: Callable[[list[Block]], None]) -> None:
        # Sibling lists are mutated in place, so work on a deep copy and swap.
        candidate = copy.deepcopy(self._blocks)
        mutate(candidate)
        self._check_tree(candidate)
        self._blocks = candidate
        self._reindex()
        if self._batch_depth:
            self._batch_dirty = True
        else:
            self._commit()

    def _commit(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:  # pragma: no cover - listeners must not break mutations
                LOGGER.debug("Document listener %s failed", listener, exc_info=True)

    def _reindex(self) -> None:
        self._index: dict[str, Block] = {}
        self._parents: dict[str, str | None] = {}

        def visit(blocks: list[Block], parent_id: str | None) -> None:
            for block in blocks:
                self._index[block.id] = block
                self._parents[block.id] = parent_id
                visit(block.children, block.id)

        visit(self._blocks, None)

    def _require(self, block_id: str) -> Block:
        block = self._index.get(block_id)
        if block is None:
            raise KeyError(f"Block '{block_id}' not found")
        return block

    def _normalize_targets(self, block_ids: Sequence[str]) -> list[str]:
        """Drop unknown and duplicate ids, and ids nested under another target."""

        requested: list[str] = []
        for block_id in block_ids:
            if block_id in self._index and block_id not in requested:
                requested.append(block_id)
        wanted = set(requested)
        result = []
        for block_id in requested:
            parent_id = self._parents.get(block_id)
            nested = False
            while parent_id is not None:
                if parent_id in wanted:
                    nested = True
                    break
                parent_id = self._parents.get(parent_id)
            if not nested:
                result.append(block_id)
        return result

    @staticmethod
    def _check_tree(blocks: list[Block]) -> None:
        if not blocks:
            raise DocumentInvariantError("A document must contain at least one block")
        seen_ids: set[str] = set()
        seen_nodes: set[int] = set()
        stack: list[Block] = list(blocks)
        while stack:
            block = stack.pop()
            if id(block) in seen_nodes:
                raise DocumentInvariantError(f"Block '{block.id}' appears more than once in the tree")
            seen_nodes.add(id(block))
            if not block.id:
                raise DocumentInvariantError("Blocks must carry a non-empty id")
            if block.id in seen_ids:
                raise DocumentInvariantError(f"Duplicate block id '{block.id}'")
            seen_ids.add(block.id)
            stack.extend(block.children)


def _locate(tree: list[Block], block_id: str) -> tuple[list[Block], int]:
    stack: list[list[Block]] = [tree]
    while stack:
        siblings = stack.pop()
        for position, block in enumerate(siblings):
            if block.id == block_id:
                return siblings, position
            if block.children:
                stack.append(block.children)
    raise KeyError(f"Block '{block_id}' not found")


def _detach(tree: list[Block], block_id: str) -> None:
    try:
        siblings, position = _locate(tree, block_id)
    except KeyError:
        return
    del siblings[position]
