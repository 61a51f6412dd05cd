"""Tests for planning and applying document tool calls."""

from __future__ import annotations

import pytest

from blockpilot.editor.document_model import BlockDocument, TableContent
from blockpilot.editor.inline_content import block_text
from blockpilot.tools.errors import BlockNotFoundError, InvalidTargetError, InvalidToolArgumentsError, TargetTextNotFoundError
from blockpilot.tools.executor import DocumentMutationExecutor
from blockpilot.tools.schemas import (
    AddContentArgs,
    DeleteContentArgs,
    ModifyContentArgs,
    ModifyTableArgs,
    ReplaceAllContentArgs,
    RequestEditorContentArgs,
)
from helpers import paragraph


def _texts(document: BlockDocument) -> list[str]:
    return [block_text(block) for block in document.blocks]


class TestAddContent:
    # ==================================================================
    # addContent
    # ==================================================================

    @pytest.mark.asyncio
    async def test_appends_after_last_block(self) -> None:
        document = BlockDocument([paragraph("X", "x")])

        outcome = await DocumentMutationExecutor(document).execute(AddContentArgs(markdown_content="Y"))

        assert _texts(document) == ["X", "Y"]
        assert outcome.inserted_ids == [document.blocks[1].id]
        assert outcome.summary == "added 1 block(s)"

    @pytest.mark.asyncio
    async def test_empty_document_is_replaced(self, empty_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(empty_document).add_content(
            AddContentArgs(markdown_content="# Hello\n\nWorld")
        )

        assert [block.type for block in empty_document.blocks] == ["heading", "paragraph"]
        assert outcome.action == "replace_document"

    @pytest.mark.asyncio
    async def test_inserts_after_target(self, simple_document: BlockDocument) -> None:
        await DocumentMutationExecutor(simple_document).execute(
            AddContentArgs(markdown_content="Between", target_block_id="p1")
        )

        assert _texts(simple_document) == ["Title", "First paragraph.", "Between", "Second paragraph."]

    @pytest.mark.asyncio
    async def test_missing_target_appends_with_warning(self, simple_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(simple_document).execute(
            AddContentArgs(markdown_content="Tail", target_block_id="ghost")
        )

        assert _texts(simple_document)[-1] == "Tail"
        assert "ghost not found" in outcome.warnings[0]

    @pytest.mark.asyncio
    async def test_target_inside_list_moves_to_list_end(self, list_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(list_document).execute(
            AddContentArgs(markdown_content="After list", target_block_id="li5")
        )

        ids = list_document.top_level_ids()
        assert ids.index(outcome.inserted_ids[0]) == ids.index("li10") + 1
        assert any("unit end" in warning for warning in outcome.warnings)

    def test_plan_does_not_touch_document(self, simple_document: BlockDocument) -> None:
        version = simple_document.version

        plan = DocumentMutationExecutor(simple_document).plan(AddContentArgs(markdown_content="Y"))

        assert plan.action == "insert"
        assert plan.reference_id == "p2"
        assert plan.operation.kind == "insert"
        assert simple_document.version == version


class TestModifyContent:
    # ==================================================================
    # modifyContent
    # ==================================================================

    @pytest.mark.asyncio
    async def test_list_item_replaces_whole_unit(self, list_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(list_document).execute(
            ModifyContentArgs(target_block_id="li5", new_markdown_content="- Alpha\n- Beta")
        )

        assert _texts(list_document) == ["Intro", "Alpha", "Beta", "Outro"]
        assert len(outcome.removed_ids) == 10
        assert outcome.warnings and "complete list unit" in outcome.warnings[0]

    @pytest.mark.asyncio
    async def test_target_text_edits_in_place(self, simple_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(simple_document).execute(
            ModifyContentArgs(target_block_id="p1", new_markdown_content="Opening", target_text="First")
        )

        assert block_text(simple_document.get_block("p1")) == "Opening paragraph."
        assert outcome.updated_ids == ["p1"]

    @pytest.mark.asyncio
    async def test_single_block_replacement(self, simple_document: BlockDocument) -> None:
        version = simple_document.version

        await DocumentMutationExecutor(simple_document).execute(
            ModifyContentArgs(target_block_id="h1", new_markdown_content="## Renamed")
        )

        assert simple_document.blocks[0].type == "heading"
        assert simple_document.blocks[0].level == 2
        assert "h1" not in simple_document
        assert simple_document.version == version + 1

    def test_missing_target_text(self, simple_document: BlockDocument) -> None:
        executor = DocumentMutationExecutor(simple_document)

        with pytest.raises(TargetTextNotFoundError):
            executor.plan(ModifyContentArgs(target_block_id="p1", new_markdown_content="x", target_text="absent"))

    def test_missing_block(self, simple_document: BlockDocument) -> None:
        with pytest.raises(BlockNotFoundError):
            DocumentMutationExecutor(simple_document).plan(
                ModifyContentArgs(target_block_id="ghost", new_markdown_content="x")
            )

    def test_target_text_on_table_is_invalid(self, mixed_document: BlockDocument) -> None:
        with pytest.raises(InvalidTargetError):
            DocumentMutationExecutor(mixed_document).plan(
                ModifyContentArgs(target_block_id="t1", new_markdown_content="x", target_text="Apples")
            )


class TestDeleteContent:
    # ==================================================================
    # deleteContent
    # ==================================================================

    @pytest.mark.asyncio
    async def test_removes_blocks(self, simple_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(simple_document).execute(
            DeleteContentArgs(target_block_ids=("p1", "ghost"))
        )

        assert simple_document.top_level_ids() == ["h1", "p2"]
        assert outcome.removed_ids == ["p1"]
        assert "ghost" in outcome.warnings[0]

    @pytest.mark.asyncio
    async def test_target_text_removes_substring(self, simple_document: BlockDocument) -> None:
        await DocumentMutationExecutor(simple_document).execute(
            DeleteContentArgs(target_block_ids=("p2",), target_text="Second ")
        )

        assert block_text(simple_document.get_block("p2")) == "paragraph."

    @pytest.mark.asyncio
    async def test_target_text_covering_block_removes_it(self, simple_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(simple_document).execute(
            DeleteContentArgs(target_block_ids=("p2",), target_text="Second paragraph.")
        )

        assert "p2" not in simple_document
        assert outcome.removed_ids == ["p2"]

    def test_target_text_ignored_for_several_blocks(self, simple_document: BlockDocument) -> None:
        plan = DocumentMutationExecutor(simple_document).plan(
            DeleteContentArgs(target_block_ids=("p1", "p2"), target_text="paragraph")
        )

        assert plan.action == "remove"
        assert plan.target_text is None
        assert any("targetText is ignored" in warning for warning in plan.warnings)

    def test_partial_unit_delete_warns(self, list_document: BlockDocument) -> None:
        plan = DocumentMutationExecutor(list_document).plan(DeleteContentArgs(target_block_ids=("li2",)))

        assert any("Deleting 1 out of 10 blocks" in warning for warning in plan.warnings)

    def test_all_targets_missing(self, simple_document: BlockDocument) -> None:
        with pytest.raises(BlockNotFoundError):
            DocumentMutationExecutor(simple_document).plan(DeleteContentArgs(target_block_ids=("a", "b")))


class TestTablesAndReplaceAll:
    # ==================================================================
    # modifyTable / replaceAllContent
    # ==================================================================

    @pytest.mark.asyncio
    async def test_modify_table(self, mixed_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(mixed_document).modify_table(
            ModifyTableArgs(table_block_id="t1", new_table_markdown="| Name | Qty |\n|---|---|\n| Pears | 5 |")
        )

        table = mixed_document.get_block(outcome.inserted_ids[0])
        assert isinstance(table.content, TableContent)
        assert table.content.rows == [["Name", "Qty"], ["Pears", "5"]]
        assert outcome.warnings == []

    @pytest.mark.asyncio
    async def test_modify_table_without_table_payload_warns(self, mixed_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(mixed_document).execute(
            ModifyTableArgs(table_block_id="t1", new_table_markdown="Just text")
        )

        assert "does not contain a table" in outcome.warnings[0]

    def test_modify_table_rejects_non_table(self, mixed_document: BlockDocument) -> None:
        with pytest.raises(InvalidTargetError) as excinfo:
            DocumentMutationExecutor(mixed_document).plan(
                ModifyTableArgs(table_block_id="p1", new_table_markdown="| a |\n|---|\n| b |")
            )

        assert excinfo.value.block_type == "paragraph"

    @pytest.mark.asyncio
    async def test_replace_all(self, mixed_document: BlockDocument) -> None:
        outcome = await DocumentMutationExecutor(mixed_document).replace_all_content(
            ReplaceAllContentArgs(new_markdown_content="# Fresh\n\nStart")
        )

        assert _texts(mixed_document) == ["Fresh", "Start"]
        assert len(outcome.removed_ids) == 7

    @pytest.mark.asyncio
    async def test_replace_all_with_nothing_leaves_empty_paragraph(self, simple_document: BlockDocument) -> None:
        await DocumentMutationExecutor(simple_document).execute(ReplaceAllContentArgs(new_markdown_content=""))

        assert simple_document.is_empty()


def test_request_editor_content_is_not_a_mutation(simple_document: BlockDocument) -> None:
    with pytest.raises(InvalidToolArgumentsError):
        DocumentMutationExecutor(simple_document).plan(RequestEditorContentArgs())
