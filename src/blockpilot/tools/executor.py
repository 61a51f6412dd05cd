"""Translate validated tool arguments into block-tree mutations.

Execution happens in two steps. :meth:`DocumentMutationExecutor.plan` is pure:
it resolves targets, expands list units and picks insertion points, producing
a :class:`MutationPlan` whose ``operation`` the preservation guard can check.
:meth:`DocumentMutationExecutor.apply` then parses the markdown payload (the
only suspension point) and mutates the document inside one atomic step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from ..analysis.conceptual_units import ConceptualUnitConfig, analyze_conceptual_units
from ..analysis.line_targeting import LineTargetingConfig, LineTargetResolver
from ..editor.document_model import Block, BlockDocument, InlineSpan, Placement
from ..editor.inline_content import block_text, replace_text_in_inline_content
from ..editor.markdown import MarkdownBlockParser
from ..safety.content_preservation import PreservationOperation
from .errors import BlockNotFoundError, InvalidTargetError, InvalidToolArgumentsError, TargetTextNotFoundError
from .schemas import (
    AddContentArgs,
    DeleteContentArgs,
    ModifyContentArgs,
    ModifyTableArgs,
    ReplaceAllContentArgs,
    ToolArguments,
    ToolName,
)

__all__ = ["MutationAction", "MutationPlan", "MutationOutcome", "DocumentMutationExecutor"]

LOGGER = logging.getLogger(__name__)

MutationAction = Literal["insert", "replace", "remove", "edit_text", "replace_document"]


@dataclass(slots=True)
class MutationPlan:
    """Resolved, not yet applied, mutation for one tool call."""

    tool_name: ToolName
    action: MutationAction
    operation: PreservationOperation
    target_ids: tuple[str, ...] = ()
    content: str = ""
    reference_id: str | None = None
    placement: Placement = "after"
    target_text: str | None = None
    expected_type: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MutationOutcome:
    tool_name: ToolName
    action: MutationAction
    inserted_ids: list[str] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)
    updated_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        parts = []
        if self.inserted_ids:
            parts.append(f"added {len(self.inserted_ids)} block(s)")
        if self.updated_ids:
            parts.append(f"updated {len(self.updated_ids)} block(s)")
        if self.removed_ids:
            parts.append(f"removed {len(self.removed_ids)} block(s)")
        return ", ".join(parts) or "no changes"

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_name": self.tool_name.value,
            "action": self.action,
            "inserted_ids": list(self.inserted_ids),
            "removed_ids": list(self.removed_ids),
            "updated_ids": list(self.updated_ids),
            "summary": self.summary,
            "warnings": list(self.warnings),
        }


class DocumentMutationExecutor:
    """Plans and applies document tool calls against one :class:`BlockDocument`."""

    def __init__(
        self,
        document: BlockDocument,
        parser: MarkdownBlockParser | None = None,
        *,
        line_config: LineTargetingConfig | None = None,
        unit_config: ConceptualUnitConfig | None = None,
    ) -> None:
        self._document = document
        self._parser = parser or MarkdownBlockParser()
        self._line_config = line_config
        self._unit_config = unit_config

    @property
    def document(self) -> BlockDocument:
        return self._document

    # ------------------------------------------------------------------
    # Convenience entry points
    # ------------------------------------------------------------------

    async def execute(self, args: ToolArguments) -> MutationOutcome:
        """Plan and apply ``args`` without consulting the preservation guard."""

        return await self.apply(self.plan(args))

    async def add_content(self, args: AddContentArgs) -> MutationOutcome:
        return await self.execute(args)

    async def modify_content(self, args: ModifyContentArgs) -> MutationOutcome:
        return await self.execute(args)

    async def delete_content(self, args: DeleteContentArgs) -> MutationOutcome:
        return await self.execute(args)

    async def modify_table(self, args: ModifyTableArgs) -> MutationOutcome:
        return await self.execute(args)

    async def replace_all_content(self, args: ReplaceAllContentArgs) -> MutationOutcome:
        return await self.execute(args)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, args: ToolArguments) -> MutationPlan:
        if isinstance(args, AddContentArgs):
            return self._plan_add(args)
        if isinstance(args, ModifyContentArgs):
            return self._plan_modify(args)
        if isinstance(args, DeleteContentArgs):
            return self._plan_delete(args)
        if isinstance(args, ModifyTableArgs):
            return self._plan_table(args)
        if isinstance(args, ReplaceAllContentArgs):
            return self._plan_replace_all(args)
        raise InvalidToolArgumentsError(
            message=f"{type(args).__name__} does not describe a document mutation",
            tool_name=getattr(args, "tool_name", ToolName.REQUEST_EDITOR_CONTENT).value,
        )

    def _plan_add(self, args: AddContentArgs) -> MutationPlan:
        operation = PreservationOperation("insert", content=args.markdown_content)
        if self._document.is_empty():
            return MutationPlan(
                tool_name=ToolName.ADD_CONTENT,
                action="replace_document",
                operation=operation,
                target_ids=tuple(self._document.top_level_ids()),
                content=args.markdown_content,
            )

        warnings: list[str] = []
        target = args.target_block_id
        if target and target not in self._document:
            warnings.append(f"Target block {target} not found; appending to the end of the document")
            target = None
        point = self._resolver().find_optimal_insertion_point(after_id=target)
        warnings.extend(point.warnings)
        return MutationPlan(
            tool_name=ToolName.ADD_CONTENT,
            action="insert",
            operation=operation,
            content=args.markdown_content,
            reference_id=point.block_id,
            placement=point.placement,
            warnings=warnings,
        )

    def _plan_modify(self, args: ModifyContentArgs) -> MutationPlan:
        block = self._require_block(args.target_block_id)
        if args.target_text is not None:
            self._require_text(block, args.target_text)
            return MutationPlan(
                tool_name=ToolName.MODIFY_CONTENT,
                action="edit_text",
                operation=PreservationOperation(
                    "modify",
                    target_ids=(block.id,),
                    content=args.new_markdown_content,
                    target_text=args.target_text,
                ),
                target_ids=(block.id,),
                content=args.new_markdown_content,
                target_text=args.target_text,
            )

        warnings: list[str] = []
        target_ids: tuple[str, ...] = (block.id,)
        unit = analyze_conceptual_units(self._document, self._unit_config).find_unit_for_block(block.id)
        if unit is not None and unit.groupable and unit.is_multi_block:
            target_ids = unit.block_ids
            warnings.append(f"Replacing the complete {unit.describe()} to keep its structure consistent")
        return MutationPlan(
            tool_name=ToolName.MODIFY_CONTENT,
            action="replace",
            operation=PreservationOperation("modify", target_ids=target_ids, content=args.new_markdown_content),
            target_ids=target_ids,
            content=args.new_markdown_content,
            warnings=warnings,
        )

    def _plan_delete(self, args: DeleteContentArgs) -> MutationPlan:
        warnings: list[str] = []
        existing = [block_id for block_id in args.target_block_ids if block_id in self._document]
        missing = [block_id for block_id in args.target_block_ids if block_id not in self._document]
        if not existing:
            raise BlockNotFoundError(
                message=f"None of the target blocks exist: {', '.join(args.target_block_ids)}",
                block_id=args.target_block_ids[0],
            )
        if missing:
            warnings.append(f"Skipping blocks that no longer exist: {', '.join(missing)}")

        if args.target_text is not None and len(existing) == 1:
            block = self._require_block(existing[0])
            spans = self._require_text(block, args.target_text)
            remaining = replace_text_in_inline_content(spans, args.target_text, "") or []
            if remaining:
                return MutationPlan(
                    tool_name=ToolName.DELETE_CONTENT,
                    action="edit_text",
                    operation=PreservationOperation("delete", target_ids=(block.id,), target_text=args.target_text),
                    target_ids=(block.id,),
                    target_text=args.target_text,
                    warnings=warnings,
                )
            warnings.append("Deleting the text leaves the block empty; removing the block")
        elif args.target_text is not None:
            warnings.append("targetText is ignored when deleting several blocks")

        integrity = analyze_conceptual_units(self._document, self._unit_config).validate_unit_integrity(
            existing, "delete"
        )
        warnings.extend(integrity.warnings)
        target_ids = tuple(existing)
        return MutationPlan(
            tool_name=ToolName.DELETE_CONTENT,
            action="remove",
            operation=PreservationOperation("delete", target_ids=target_ids),
            target_ids=target_ids,
            warnings=warnings,
        )

    def _plan_table(self, args: ModifyTableArgs) -> MutationPlan:
        block = self._require_block(args.table_block_id)
        if block.type != "table":
            raise InvalidTargetError(
                message=f"Block {block.id} is a {block.type}, not a table",
                block_id=block.id,
                block_type=block.type,
                suggestion="Use modifyContent for non-table blocks",
            )
        return MutationPlan(
            tool_name=ToolName.MODIFY_TABLE,
            action="replace",
            operation=PreservationOperation("modify", target_ids=(block.id,), content=args.new_table_markdown),
            target_ids=(block.id,),
            content=args.new_table_markdown,
            expected_type="table",
        )

    def _plan_replace_all(self, args: ReplaceAllContentArgs) -> MutationPlan:
        target_ids = tuple(self._document.top_level_ids())
        return MutationPlan(
            tool_name=ToolName.REPLACE_ALL_CONTENT,
            action="replace_document",
            operation=PreservationOperation("modify", target_ids=target_ids, content=args.new_markdown_content),
            target_ids=target_ids,
            content=args.new_markdown_content,
        )

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    async def apply(self, plan: MutationPlan) -> MutationOutcome:
        outcome = MutationOutcome(tool_name=plan.tool_name, action=plan.action, warnings=list(plan.warnings))
        if plan.action == "edit_text":
            self._apply_text_edit(plan, outcome)
            return outcome
        if plan.action == "remove":
            with self._document.atomic():
                outcome.removed_ids = self._document.remove_blocks(plan.target_ids)
            return outcome

        blocks = await self._parse(plan.content, outcome)
        with self._document.atomic():
            if plan.action == "insert":
                self._apply_insert(plan, blocks, outcome)
            elif plan.action == "replace":
                self._apply_replace(plan, blocks, outcome)
            elif plan.action == "replace_document":
                outcome.removed_ids = [block.id for block in self._document.iter_blocks()]
                outcome.inserted_ids = self._document.replace_document(blocks or [Block.paragraph()])
        LOGGER.debug("Applied %s: %s", plan.tool_name.value, outcome.summary)
        return outcome

    async def _parse(self, content: str, outcome: MutationOutcome) -> list[Block]:
        blocks = await self._parser.parse_async(content)
        if not blocks and content.strip():
            outcome.warnings.append("Content could not be parsed as markdown; inserted as plain text")
            blocks = [Block.paragraph(content.strip())]
        return blocks

    def _apply_insert(self, plan: MutationPlan, blocks: list[Block], outcome: MutationOutcome) -> None:
        if not blocks:
            return
        reference = plan.reference_id
        placement = plan.placement
        if reference is None or reference not in self._document:
            # The document may have changed while the payload was being parsed.
            if reference is not None:
                outcome.warnings.append(f"Insertion point {reference} disappeared; appending to the end")
            reference, placement = self._document.top_level_ids()[-1], "after"
        outcome.inserted_ids = self._document.insert_blocks(blocks, reference, placement)

    def _apply_replace(self, plan: MutationPlan, blocks: list[Block], outcome: MutationOutcome) -> None:
        current = [block_id for block_id in plan.target_ids if block_id in self._document]
        if not current:
            raise BlockNotFoundError(
                message=f"Target block {plan.target_ids[0]} no longer exists",
                block_id=plan.target_ids[0],
            )
        if plan.expected_type and not any(block.type == plan.expected_type for block in blocks):
            outcome.warnings.append(f"Replacement content does not contain a {plan.expected_type}")
        if not blocks:
            outcome.removed_ids = self._document.remove_blocks(current)
            return
        outcome.removed_ids = list(current)
        outcome.inserted_ids = self._document.replace_blocks(current, blocks)

    def _apply_text_edit(self, plan: MutationPlan, outcome: MutationOutcome) -> None:
        block_id = plan.target_ids[0]
        block = self._require_block(block_id)
        spans = self._require_text(block, plan.target_text or "")
        replacement = plan.content if plan.tool_name is ToolName.MODIFY_CONTENT else ""
        updated = replace_text_in_inline_content(spans, plan.target_text or "", replacement)
        if updated is None:
            raise TargetTextNotFoundError(
                message=f"Text '{plan.target_text}' not found in block {block_id}",
                block_id=block_id,
                target_text=plan.target_text,
            )
        with self._document.atomic():
            if not updated and plan.tool_name is ToolName.DELETE_CONTENT:
                outcome.removed_ids = self._document.remove_blocks([block_id])
            else:
                self._document.update_block(block_id, content=updated)
                outcome.updated_ids = [block_id]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolver(self) -> LineTargetResolver:
        return LineTargetResolver(self._document, self._line_config, unit_config=self._unit_config)

    def _require_block(self, block_id: str) -> Block:
        block = self._document.get_block(block_id)
        if block is None:
            raise BlockNotFoundError(message=f"Block {block_id} not found in the document", block_id=block_id)
        return block

    def _require_text(self, block: Block, target_text: str) -> list[InlineSpan]:
        if not isinstance(block.content, list):
            raise InvalidTargetError(
                message=f"Block {block.id} has no inline text to edit",
                block_id=block.id,
                block_type=block.type,
                suggestion="Replace the whole block instead of targeting text",
            )
        if not target_text or target_text not in block_text(block):
            raise TargetTextNotFoundError(
                message=f"Text '{target_text}' not found in block {block.id}",
                block_id=block.id,
                target_text=target_text,
            )
        return block.content
