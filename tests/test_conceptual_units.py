"""Tests for conceptual unit grouping."""

from __future__ import annotations

from blockpilot.analysis.conceptual_units import (
    ConceptualUnitConfig,
    analyze_conceptual_units,
)
from blockpilot.editor.document_model import Block, BlockDocument, InlineSpan
from helpers import list_item, paragraph


class TestGrouping:
    # ==================================================================
    # Unit detection
    # ==================================================================

    def test_contiguous_list_items_form_one_unit(self, list_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(list_document)

        unit = analysis.find_unit_for_block("li5")
        assert unit is not None
        assert unit.unit_id == "unit-li1"
        assert unit.size == 10
        assert unit.kind == "list"
        assert analysis.find_unit_for_block("intro").size == 1
        assert analysis.standalone_block_ids == ["intro", "outro"]

    def test_nested_children_join_their_list(self, mixed_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(mixed_document)

        unit = analysis.find_unit_for_block("b1a")
        assert unit.block_ids == ("b1", "b1a", "b2")
        assert unit.nested
        assert unit.kind == "nested-list"
        assert analysis.find_unit_for_block("t1").kind == "single-block"

    def test_type_change_starts_new_unit(self) -> None:
        document = BlockDocument(
            [
                list_item("a", "a"),
                list_item("b", "b", kind="numberedListItem"),
                list_item("c", "c", kind="checkListItem", checked=False),
                list_item("d", "d", kind="checkListItem", checked=True),
            ]
        )

        analysis = analyze_conceptual_units(document)

        assert [unit.block_ids for unit in analysis.units] == [("a",), ("b",), ("c", "d")]
        assert analysis.units[2].kind == "checklist"

    def test_level_prop_splits_units(self) -> None:
        document = BlockDocument([list_item("a", "a", level=1), list_item("b", "b", level=2)])

        analysis = analyze_conceptual_units(document)

        assert len(analysis.units) == 2

    def test_paragraph_child_breaks_list_unit(self) -> None:
        document = BlockDocument(
            [list_item("a", "a", children=[paragraph("note", "note")]), list_item("b", "b")]
        )

        analysis = analyze_conceptual_units(document)

        assert [unit.block_ids for unit in analysis.units] == [("a",), ("note",), ("b",)]

    def test_paragraphs_never_group(self) -> None:
        document = BlockDocument([paragraph("a", "a"), paragraph("b", "b")])

        analysis = analyze_conceptual_units(document)

        assert [unit.size for unit in analysis.units] == [1, 1]

    def test_custom_groupable_types(self) -> None:
        document = BlockDocument([paragraph("a", "a"), paragraph("b", "b")])
        config = ConceptualUnitConfig(groupable_types=frozenset({"paragraph"}))

        analysis = analyze_conceptual_units(document, config)

        assert analysis.units[0].block_ids == ("a", "b")

    def test_every_block_has_a_unit(self, mixed_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(mixed_document)

        for block in mixed_document.iter_blocks():
            assert analysis.find_unit_for_block(block.id) is not None


class TestUnitOperations:
    # ==================================================================
    # Expansion and integrity checks
    # ==================================================================

    def test_expand_to_complete_units(self, list_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(list_document)

        expansion = analysis.expand_to_complete_units(["intro", "li3"])

        assert expansion.block_ids[:2] == ["intro", "li1"]
        assert len(expansion.block_ids) == 11
        assert "li3" not in expansion.added_ids
        assert len(expansion.added_ids) == 9
        assert expansion.warnings and "added 9 block(s)" in expansion.warnings[0]

    def test_partial_delete_is_flagged(self, list_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(list_document)

        integrity = analysis.validate_unit_integrity(["li2", "li3"], "delete")

        assert not integrity.is_valid
        assert "Deleting 2 out of 10 blocks" in integrity.warnings[0]
        assert integrity.suggested_action

    def test_full_delete_is_valid(self, list_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(list_document)

        integrity = analysis.validate_unit_integrity([f"li{n}" for n in range(1, 11)], "delete")

        assert integrity.is_valid
        assert integrity.warnings == []

    def test_partial_modify_warns_without_invalidating(self, list_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(list_document)

        integrity = analysis.validate_unit_integrity(["li4"], "modify")

        assert integrity.is_valid
        assert "Modifying 1 out of 10 blocks" in integrity.warnings[0]

    def test_unit_block_ids_for_unknown_block(self, simple_document: BlockDocument) -> None:
        analysis = analyze_conceptual_units(simple_document)

        assert analysis.unit_block_ids("ghost") == ["ghost"]
        assert analysis.unit_block_ids("p1") == ["p1"]

    def test_describe(self) -> None:
        document = BlockDocument([Block(type="checkListItem", content=[InlineSpan("x")], id="c")])

        unit = analyze_conceptual_units(document).units[0]

        assert unit.describe() == "checklist unit 'unit-c' (1 block)"
