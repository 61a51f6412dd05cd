"""Impact estimation and allow/warn/block decisions for proposed mutations.

Every validator here is a pure function of the current document and the
proposed payload. They never mutate the document and must run before the
executor applies anything.
"""

from __future__ import annotations

import copy
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Sequence

from ..editor.document_model import SPECIAL_BLOCK_TYPES, Block, BlockDocument, TableContent
from ..editor.inline_content import get_inline_text

__all__ = [
    "ContentPreservationConfig",
    "DEFAULT_PRESERVATION_CONFIG",
    "ContentImpact",
    "ContentPreservationResult",
    "ContentSnapshot",
    "PreservationOperation",
    "analyze_block_content",
    "analyze_content_impact",
    "validate_content_modification",
    "validate_content_deletion",
    "validate_content_insertion",
    "check_content_preservation",
    "create_content_snapshot",
]

OperationKind = Literal["insert", "modify", "delete"]

_TABLE_ESTIMATE = 50
_MEDIA_ESTIMATE = 20
_SPECIAL_RATIO_FLOOR = 0.5
_MODIFY_WARN_PERCENT = 25.0
_MODIFY_WARN_CHARS = 500
_DELETE_WARN_PERCENT = 15.0
_DELETE_WARN_CHARS = 300
_INSERT_WARN_CHARS = 5000
_UNSAFE_MARKUP = re.compile(r"<script\b", re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class ContentPreservationConfig:
    """Thresholds controlling when edits are blocked or flagged."""

    max_replacement_ratio: float = 0.1
    min_content_threshold: int = 100
    max_batch_delete_percent: float = 75.0
    warn_on_large_changes: bool = True
    protect_special_blocks: bool = True


DEFAULT_PRESERVATION_CONFIG = ContentPreservationConfig()


@dataclass(slots=True)
class ContentImpact:
    characters_affected: int = 0
    blocks_affected: int = 0
    percent_of_document: float = 0.0
    content_types: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "characters_affected": self.characters_affected,
            "blocks_affected": self.blocks_affected,
            "percent_of_document": round(self.percent_of_document, 2),
            "content_types": list(self.content_types),
        }


@dataclass(slots=True)
class ContentPreservationResult:
    is_allowed: bool
    should_warn: bool = False
    error_message: str | None = None
    warning_message: str | None = None
    impact: ContentImpact | None = None
    preservation_reason: str | None = None
    suggested_action: str | None = None

    @property
    def message(self) -> str | None:
        return self.error_message if not self.is_allowed else self.warning_message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"is_allowed": self.is_allowed, "should_warn": self.should_warn}
        for name in ("error_message", "warning_message", "preservation_reason", "suggested_action"):
            value = getattr(self, name)
            if value:
                payload[name] = value
        if self.impact is not None:
            payload["impact"] = self.impact.to_dict()
        return payload


@dataclass(slots=True)
class PreservationOperation:
    """Description of a proposed mutation handed to :func:`check_content_preservation`."""

    kind: OperationKind
    target_ids: tuple[str, ...] = ()
    content: str | None = None
    target_text: str | None = None
    reference_id: str | None = None


@dataclass(slots=True)
class ContentSnapshot:
    block_id: str
    original: dict[str, Any]
    timestamp: float
    operation: str


# ----------------------------------------------------------------------
# Impact
# ----------------------------------------------------------------------


def analyze_block_content(block: Block) -> int:
    """Return the character weight of ``block`` itself, excluding children."""

    if isinstance(block.content, TableContent):
        text_length = sum(len(cell) for row in block.content.rows for cell in row)
        return text_length or _TABLE_ESTIMATE
    if block.type == "table":
        return _TABLE_ESTIMATE
    if block.type in ("image", "file"):
        return _MEDIA_ESTIMATE
    return len(get_inline_text(block.content))


def _affected_blocks(document: BlockDocument, block_ids: Sequence[str]) -> list[Block]:
    """Resolve ``block_ids`` plus their descendants, each block once."""

    seen: set[str] = set()
    affected: list[Block] = []
    for block_id in block_ids:
        block = document.get_block(block_id)
        if block is None:
            continue
        for node in block.iter_tree():
            if node.id in seen:
                continue
            seen.add(node.id)
            affected.append(node)
    return affected


def analyze_content_impact(
    document: BlockDocument,
    block_ids: Sequence[str],
    *,
    target_text: str | None = None,
) -> ContentImpact:
    """Measure what touching ``block_ids`` would affect.

    With ``target_text`` the edit is confined to that substring, so characters
    and the document share are measured from the substring alone.
    """

    affected = _affected_blocks(document, block_ids)
    total_blocks = max(document.block_count(), 1)
    content_types: list[str] = []
    for block in affected:
        if block.type not in content_types:
            content_types.append(block.type)

    if target_text is not None:
        total_chars = sum(analyze_block_content(block) for block in document.iter_blocks())
        characters = len(target_text)
        percent = (characters / total_chars * 100) if total_chars else 0.0
        return ContentImpact(characters, len(affected), percent, content_types)

    characters = sum(analyze_block_content(block) for block in affected)
    return ContentImpact(characters, len(affected), len(affected) / total_blocks * 100, content_types)


# ----------------------------------------------------------------------
# Validators
# ----------------------------------------------------------------------


def validate_content_modification(
    document: BlockDocument,
    block_ids: Sequence[str],
    new_content: str | Sequence[str],
    config: ContentPreservationConfig = DEFAULT_PRESERVATION_CONFIG,
    *,
    target_text: str | None = None,
) -> ContentPreservationResult:
    impact = analyze_content_impact(document, block_ids, target_text=target_text)
    new_characters = len(new_content) if isinstance(new_content, str) else len("".join(new_content))
    ratio = new_characters / impact.characters_affected if impact.characters_affected > 0 else 1.0

    if impact.characters_affected >= config.min_content_threshold and ratio < config.max_replacement_ratio:
        return ContentPreservationResult(
            is_allowed=False,
            error_message=(
                f"Content replacement blocked: Replacing {impact.characters_affected} characters with "
                f"{new_characters} characters ({round(ratio * 100)}% replacement ratio)"
            ),
            impact=impact,
            preservation_reason=(
                f"Replacement ratio {ratio:.2f} is below the minimum {config.max_replacement_ratio}"
            ),
            suggested_action=(
                "Review the content change or use more specific targeting to modify only the intended portion"
            ),
        )

    special = [kind for kind in impact.content_types if kind in SPECIAL_BLOCK_TYPES]
    if config.protect_special_blocks and special and ratio < _SPECIAL_RATIO_FLOOR:
        return ContentPreservationResult(
            is_allowed=False,
            error_message=(
                f"Modification blocked: Special content blocks ({', '.join(special)}) require careful handling"
            ),
            impact=impact,
            preservation_reason="Special blocks would lose most of their content",
            suggested_action="Use block-specific tools or confirm the modification is intentional",
        )

    if config.warn_on_large_changes and (
        impact.percent_of_document > _MODIFY_WARN_PERCENT or impact.characters_affected > _MODIFY_WARN_CHARS
    ):
        return ContentPreservationResult(
            is_allowed=True,
            should_warn=True,
            warning_message=(
                f"Large content modification: Affecting {impact.blocks_affected} blocks "
                f"({round(impact.percent_of_document)}% of document) with {impact.characters_affected} characters"
            ),
            impact=impact,
        )
    return ContentPreservationResult(is_allowed=True, impact=impact)


def validate_content_deletion(
    document: BlockDocument,
    block_ids: Sequence[str],
    config: ContentPreservationConfig = DEFAULT_PRESERVATION_CONFIG,
    *,
    target_text: str | None = None,
) -> ContentPreservationResult:
    impact = analyze_content_impact(document, block_ids, target_text=target_text)

    if target_text is None:
        removed = {block.id for block in _affected_blocks(document, block_ids)}
        if removed and all(block_id in removed for block_id in document.top_level_ids()):
            return ContentPreservationResult(
                is_allowed=False,
                error_message="Deletion blocked: Cannot delete all content from the document",
                impact=impact,
                preservation_reason="A document must keep at least one block",
                suggested_action="Add new content before deleting existing content, or delete blocks individually",
            )
        if impact.percent_of_document > config.max_batch_delete_percent:
            return ContentPreservationResult(
                is_allowed=False,
                error_message=(
                    f"Deletion blocked: Cannot delete {round(impact.percent_of_document)}% of the document "
                    f"in one operation (limit: {config.max_batch_delete_percent:g}%)"
                ),
                impact=impact,
                preservation_reason="Batch deletion exceeds the configured limit",
                suggested_action="Delete content in smaller batches or confirm this is intentional",
            )

    special = [kind for kind in impact.content_types if kind in SPECIAL_BLOCK_TYPES]
    if config.protect_special_blocks and special and target_text is None:
        return ContentPreservationResult(
            is_allowed=True,
            should_warn=True,
            warning_message=f"Deleting special content: {', '.join(special)} blocks will be permanently removed",
            impact=impact,
        )

    if config.warn_on_large_changes and (
        impact.percent_of_document > _DELETE_WARN_PERCENT or impact.characters_affected > _DELETE_WARN_CHARS
    ):
        return ContentPreservationResult(
            is_allowed=True,
            should_warn=True,
            warning_message=(
                f"Large content deletion: Removing {impact.blocks_affected} blocks "
                f"({round(impact.percent_of_document)}% of document) with {impact.characters_affected} characters"
            ),
            impact=impact,
        )
    return ContentPreservationResult(is_allowed=True, impact=impact)


def validate_content_insertion(
    document: BlockDocument,
    content: str | Sequence[str],
    config: ContentPreservationConfig = DEFAULT_PRESERVATION_CONFIG,
) -> ContentPreservationResult:
    items = [content] if isinstance(content, str) else list(content)
    total = sum(len(item) for item in items)
    impact = ContentImpact(total, len(items), 0.0, ["new_content"])

    if any(_UNSAFE_MARKUP.search(item) for item in items):
        return ContentPreservationResult(
            is_allowed=False,
            error_message="Content insertion blocked: Potentially unsafe content detected",
            impact=impact,
            preservation_reason="Content contains script markup",
            suggested_action="Remove script tags from the content before insertion",
        )
    if config.warn_on_large_changes and total > _INSERT_WARN_CHARS:
        return ContentPreservationResult(
            is_allowed=True,
            should_warn=True,
            warning_message=f"Large content insertion: Adding {total} characters to the document",
            impact=impact,
        )
    return ContentPreservationResult(is_allowed=True, impact=impact)


def check_content_preservation(
    document: BlockDocument,
    operation: PreservationOperation,
    config: ContentPreservationConfig = DEFAULT_PRESERVATION_CONFIG,
) -> ContentPreservationResult:
    """Route ``operation`` to the validator for its kind."""

    if operation.kind == "modify":
        if not operation.target_ids or operation.content is None:
            return ContentPreservationResult(
                is_allowed=False,
                error_message="Invalid modification operation: missing targets or content",
            )
        return validate_content_modification(
            document, operation.target_ids, operation.content, config, target_text=operation.target_text
        )
    if operation.kind == "delete":
        if not operation.target_ids:
            return ContentPreservationResult(
                is_allowed=False,
                error_message="Invalid deletion operation: missing target blocks",
            )
        return validate_content_deletion(document, operation.target_ids, config, target_text=operation.target_text)
    if operation.kind == "insert":
        if not operation.content:
            return ContentPreservationResult(
                is_allowed=False,
                error_message="Invalid insertion operation: missing content",
            )
        return validate_content_insertion(document, operation.content, config)
    return ContentPreservationResult(is_allowed=False, error_message=f"Unknown operation type: {operation.kind}")


def create_content_snapshot(document: BlockDocument, block_ids: Sequence[str], operation: str) -> list[ContentSnapshot]:
    """Deep-copy the targeted blocks so an operation can be audited later."""

    now = time.time()
    snapshots: list[ContentSnapshot] = []
    for block_id in block_ids:
        block = document.get_block(block_id)
        if block is not None:
            snapshots.append(ContentSnapshot(block_id, copy.deepcopy(block.to_dict()), now, operation))
    return snapshots
