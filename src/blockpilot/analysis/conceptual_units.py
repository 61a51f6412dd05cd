"""Grouping of contiguous same-type blocks into conceptual units.

A conceptual unit is the run of blocks an edit should treat as one thing: a
bulleted list, a checklist, the rows of a table. Blocks whose type cannot be
grouped (paragraphs, headings, images) become singleton units so every block
has unit information.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal, Sequence

from ..editor.document_model import Block, BlockDocument
from .hierarchy import HierarchyEntry, HierarchyIndex

__all__ = [
    "DEFAULT_GROUPABLE_TYPES",
    "ConceptualUnit",
    "ConceptualUnitConfig",
    "ConceptualUnitAnalysis",
    "UnitExpansion",
    "UnitIntegrity",
    "analyze_conceptual_units",
]

DEFAULT_GROUPABLE_TYPES: frozenset[str] = frozenset(
    {"bulletListItem", "numberedListItem", "checkListItem", "tableRow"}
)

UnitOperation = Literal["modify", "delete", "move"]


@dataclass(slots=True, frozen=True)
class ConceptualUnitConfig:
    groupable_types: frozenset[str] = DEFAULT_GROUPABLE_TYPES


@dataclass(slots=True)
class ConceptualUnit:
    """A contiguous run of blocks sharing type and ``props.level``."""

    unit_id: str
    type: str
    block_ids: tuple[str, ...]
    level: int = 0
    depth: int = 0
    groupable: bool = False
    nested: bool = False

    @property
    def root_block_id(self) -> str:
        return self.block_ids[0]

    @property
    def size(self) -> int:
        return len(self.block_ids)

    @property
    def is_multi_block(self) -> bool:
        return len(self.block_ids) > 1

    @property
    def kind(self) -> str:
        if not self.groupable:
            return "single-block"
        if self.type == "checkListItem":
            return "checklist"
        if self.type in ("table", "tableRow"):
            return "table"
        return "nested-list" if self.nested else "list"

    def describe(self) -> str:
        noun = "block" if self.size == 1 else "blocks"
        return f"{self.kind} unit '{self.unit_id}' ({self.size} {noun})"


@dataclass(slots=True)
class UnitExpansion:
    block_ids: list[str]
    added_ids: list[str] = field(default_factory=list)
    units: list[ConceptualUnit] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UnitIntegrity:
    is_valid: bool
    warnings: list[str] = field(default_factory=list)
    affected_units: list[ConceptualUnit] = field(default_factory=list)
    suggested_action: str | None = None


class ConceptualUnitAnalysis:
    """Units of one document snapshot plus the lookups built over them."""

    def __init__(self, units: Iterable[ConceptualUnit], hierarchy: HierarchyIndex) -> None:
        self.units: list[ConceptualUnit] = list(units)
        self.hierarchy = hierarchy
        self._by_block: dict[str, ConceptualUnit] = {}
        for unit in self.units:
            for block_id in unit.block_ids:
                self._by_block[block_id] = unit

    def find_unit_for_block(self, block_id: str) -> ConceptualUnit | None:
        return self._by_block.get(block_id)

    def unit_block_ids(self, block_id: str) -> list[str]:
        unit = self._by_block.get(block_id)
        return list(unit.block_ids) if unit else [block_id]

    @property
    def standalone_block_ids(self) -> list[str]:
        return [unit.block_ids[0] for unit in self.units if not unit.is_multi_block]

    def expand_to_complete_units(self, block_ids: Sequence[str]) -> UnitExpansion:
        """Grow ``block_ids`` so no unit is only partially covered."""

        expanded: list[str] = []
        seen: set[str] = set()
        added: list[str] = []
        units: list[ConceptualUnit] = []
        warnings: list[str] = []
        for block_id in block_ids:
            unit = self._by_block.get(block_id)
            members = list(unit.block_ids) if unit else [block_id]
            if unit is not None and unit not in units:
                units.append(unit)
                missing = [member for member in members if member not in block_ids]
                if missing:
                    warnings.append(
                        f"Expanded selection to the complete {unit.describe()}: added {len(missing)} block(s)"
                    )
            for member in members:
                if member in seen:
                    continue
                seen.add(member)
                expanded.append(member)
                if member not in block_ids:
                    added.append(member)
        return UnitExpansion(block_ids=expanded, added_ids=added, units=units, warnings=warnings)

    def validate_unit_integrity(self, block_ids: Sequence[str], operation: UnitOperation) -> UnitIntegrity:
        affected: list[ConceptualUnit] = []
        for block_id in block_ids:
            unit = self._by_block.get(block_id)
            if unit is not None and unit not in affected:
                affected.append(unit)

        warnings: list[str] = []
        breaking = False
        targets = set(block_ids)
        for unit in affected:
            covered = sum(1 for member in unit.block_ids if member in targets)
            if covered >= unit.size:
                continue
            if operation == "delete":
                breaking = True
                warnings.append(
                    f"Deleting {covered} out of {unit.size} blocks in {unit.kind} unit '{unit.unit_id}' may break its structure"
                )
            elif operation == "modify":
                warnings.append(
                    f"Modifying {covered} out of {unit.size} blocks in {unit.kind} unit '{unit.unit_id}'; keep the rest consistent"
                )
        for unit in affected:
            if unit.kind == "checklist" and operation == "modify":
                warnings.append(f"Modifying checklist unit '{unit.unit_id}'; keep the checklist format")
            elif unit.kind == "table" and operation != "modify":
                warnings.append(f"Performing {operation} on table unit '{unit.unit_id}'; tables are usually modified instead")

        return UnitIntegrity(
            is_valid=not breaking,
            warnings=warnings,
            affected_units=affected,
            suggested_action="Operate on complete conceptual units rather than partial blocks" if breaking else None,
        )


def analyze_conceptual_units(
    source: BlockDocument | Sequence[Block] | HierarchyIndex,
    config: ConceptualUnitConfig | None = None,
) -> ConceptualUnitAnalysis:
    """Group the document's blocks into units in a single pre-order scan."""

    settings = config or ConceptualUnitConfig()
    hierarchy = source if isinstance(source, HierarchyIndex) else HierarchyIndex.build(source)
    units: list[ConceptualUnit] = []
    current: list[HierarchyEntry] = []

    def close() -> None:
        if not current:
            return
        first = current[0]
        block_type = first.block.type
        units.append(
            ConceptualUnit(
                unit_id=f"unit-{first.block_id}",
                type=block_type,
                block_ids=tuple(entry.block_id for entry in current),
                level=first.block.level,
                depth=first.level,
                groupable=block_type in settings.groupable_types,
                nested=any(entry.level > first.level for entry in current),
            )
        )
        current.clear()

    for entry in hierarchy.entries:
        if current and _continues(current[0], entry, settings):
            current.append(entry)
            continue
        close()
        current.append(entry)
    close()
    return ConceptualUnitAnalysis(units, hierarchy)


def _continues(head: HierarchyEntry, entry: HierarchyEntry, config: ConceptualUnitConfig) -> bool:
    block = entry.block
    if head.block.type not in config.groupable_types:
        return False
    if block.type != head.block.type or block.level != head.block.level:
        return False
    return entry.level >= head.level
