"""Line-oriented view of the block tree for search and relative positioning.

Every block is one "line". Lines are recomputed from the document on every
query; nothing here is cached across mutations.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Literal

from ..editor.document_model import BlockDocument, Placement
from ..editor.inline_content import block_text
from .conceptual_units import ConceptualUnit, ConceptualUnitAnalysis, ConceptualUnitConfig, analyze_conceptual_units
from .hierarchy import HierarchyIndex

__all__ = [
    "LineTargetingConfig",
    "UnitPosition",
    "LineTarget",
    "DocumentLines",
    "LineSearchResult",
    "RelativeResolution",
    "LineRange",
    "LineContext",
    "InsertionPoint",
    "LineTargetResolver",
]

LOGGER = logging.getLogger(__name__)

Direction = Literal["before", "after", "same"]
_NON_TEXT_TYPES = frozenset({"image", "file", "video", "audio"})


@dataclass(slots=True, frozen=True)
class LineTargetingConfig:
    include_empty_lines: bool = True
    respect_unit_boundaries: bool = True
    include_non_text_blocks: bool = True
    max_search_distance: int = 100


@dataclass(slots=True, frozen=True)
class UnitPosition:
    unit_id: str
    unit_type: str
    position_in_unit: int
    total_in_unit: int


@dataclass(slots=True)
class LineTarget:
    block_id: str
    line_number: int
    content: str
    block_type: str
    is_empty: bool
    level: int
    parent_id: str | None
    unit: UnitPosition | None = None

    @property
    def is_part_of_unit(self) -> bool:
        """Whether the line sits in a unit of more than one block."""

        return self.unit is not None and self.unit.total_in_unit > 1


@dataclass(slots=True)
class DocumentLines:
    lines: list[LineTarget]
    units: ConceptualUnitAnalysis
    line_map: dict[str, int]

    @property
    def hierarchy(self) -> HierarchyIndex:
        return self.units.hierarchy

    def __len__(self) -> int:
        return len(self.lines)

    def line_for(self, block_id: str) -> LineTarget | None:
        line_number = self.line_map.get(block_id)
        return self.lines[line_number] if line_number is not None else None

    def unit_line_range(self, unit: ConceptualUnit) -> tuple[int, int] | None:
        numbers = [self.line_map[block_id] for block_id in unit.block_ids if block_id in self.line_map]
        if not numbers:
            return None
        return min(numbers), max(numbers)


@dataclass(slots=True)
class LineSearchResult:
    matches: list[LineTarget]
    total_lines: int
    search_text: str
    case_sensitive: bool


@dataclass(slots=True)
class RelativeResolution:
    target: LineTarget | None
    reference: LineTarget | None
    requested_offset: int
    actual_offset: int
    warnings: list[str] = field(default_factory=list)

    @property
    def clamped(self) -> bool:
        return self.requested_offset != self.actual_offset


@dataclass(slots=True)
class LineRange:
    lines: list[LineTarget]
    start: int
    end: int
    partial_units: list[ConceptualUnit] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class LineContext:
    target: LineTarget
    before: list[LineTarget]
    after: list[LineTarget]
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class InsertionPoint:
    """Where new blocks go: next to ``block_id`` on the ``placement`` side."""

    block_id: str
    placement: Placement
    warnings: list[str] = field(default_factory=list)


class LineTargetResolver:
    """Resolve content, absolute and relative line targets for a document."""

    def __init__(
        self,
        document: BlockDocument,
        config: LineTargetingConfig | None = None,
        *,
        unit_config: ConceptualUnitConfig | None = None,
    ) -> None:
        self._document = document
        self._config = config or LineTargetingConfig()
        self._unit_config = unit_config

    @property
    def config(self) -> LineTargetingConfig:
        return self._config

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_document_lines(self) -> DocumentLines:
        hierarchy = HierarchyIndex.build(self._document)
        units = analyze_conceptual_units(hierarchy, self._unit_config)
        lines: list[LineTarget] = []
        line_map: dict[str, int] = {}
        for entry in hierarchy.entries:
            block = entry.block
            content = block_text(block)
            is_empty = not content.strip()
            if is_empty and not self._config.include_empty_lines:
                continue
            if block.type in _NON_TEXT_TYPES and not self._config.include_non_text_blocks:
                continue
            unit = units.find_unit_for_block(block.id)
            position = None
            if unit is not None:
                position = UnitPosition(
                    unit_id=unit.unit_id,
                    unit_type=unit.type,
                    position_in_unit=unit.block_ids.index(block.id),
                    total_in_unit=unit.size,
                )
            line = LineTarget(
                block_id=block.id,
                line_number=len(lines),
                content=content,
                block_type=block.type,
                is_empty=is_empty,
                level=entry.level,
                parent_id=entry.parent_id,
                unit=position,
            )
            line_map[block.id] = line.line_number
            lines.append(line)
        return DocumentLines(lines=lines, units=units, line_map=line_map)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_lines_by_content(
        self,
        text: str,
        *,
        case_sensitive: bool = False,
        exact_match: bool = False,
        include_partial_matches: bool = True,
        max_results: int = 50,
    ) -> LineSearchResult:
        analysis = self.analyze_document_lines()
        needle = text if case_sensitive else text.lower()
        word_pattern = None
        if not exact_match and not include_partial_matches:
            flags = 0 if case_sensitive else re.IGNORECASE
            word_pattern = re.compile(rf"\b{re.escape(text)}\b", flags)

        matches: list[LineTarget] = []
        for line in analysis.lines:
            if len(matches) >= max_results:
                break
            haystack = line.content if case_sensitive else line.content.lower()
            if exact_match:
                hit = haystack == needle
            elif word_pattern is not None:
                hit = word_pattern.search(line.content) is not None
            else:
                hit = needle in haystack
            if hit:
                matches.append(line)
        return LineSearchResult(matches, len(analysis.lines), text, case_sensitive)

    def find_line_by_position(self, line_number: int) -> LineTarget | None:
        lines = self.analyze_document_lines().lines
        if 0 <= line_number < len(lines):
            return lines[line_number]
        return None

    def find_line_by_relative_position(
        self,
        reference_id: str,
        direction: Direction = "after",
        offset: int = 1,
        *,
        respect_unit_boundaries: bool | None = None,
    ) -> RelativeResolution:
        """Return the line ``offset`` lines away from ``reference_id``.

        The target is clamped to the reference's unit (when enabled), then to
        the document, then to ``max_search_distance``; each clamp adds a
        warning instead of failing.
        """

        analysis = self.analyze_document_lines()
        reference = analysis.line_for(reference_id)
        requested = 0 if direction == "same" else (-abs(offset) if direction == "before" else abs(offset))
        if reference is None:
            return RelativeResolution(None, None, requested, 0, [f"Reference line {reference_id} not found"])

        warnings: list[str] = []
        origin = reference.line_number
        target = origin + requested
        respect = self._config.respect_unit_boundaries if respect_unit_boundaries is None else respect_unit_boundaries

        low, high = 0, len(analysis.lines) - 1
        if respect and reference.is_part_of_unit:
            unit = analysis.units.find_unit_for_block(reference_id)
            bounds = analysis.unit_line_range(unit) if unit is not None else None
            if bounds is not None:
                low, high = bounds
                if target < low:
                    target = low
                    warnings.append("Target position would be outside the conceptual unit, clamped to unit start")
                elif target > high:
                    target = high
                    warnings.append("Target position would be outside the conceptual unit, clamped to unit end")

        if target < 0:
            target = 0
            warnings.append("Target position would be before document start, clamped to line 0")
        elif target >= len(analysis.lines):
            target = len(analysis.lines) - 1
            warnings.append("Target position would be after document end, clamped to last line")

        limit = self._config.max_search_distance
        if abs(target - origin) > limit:
            # Moving toward the reference never leaves [low, high] because the reference is inside it.
            target = origin + limit if target > origin else origin - limit
            target = min(max(target, low), high)
            warnings.append(f"Target position exceeds maximum search distance ({limit}), operation limited")

        if warnings:
            LOGGER.debug("Relative target from %s adjusted: %s", reference_id, warnings)
        return RelativeResolution(
            target=analysis.lines[target],
            reference=reference,
            requested_offset=requested,
            actual_offset=target - origin,
            warnings=warnings,
        )

    def get_lines_in_range(self, start: int, end: int) -> LineRange:
        analysis = self.analyze_document_lines()
        warnings: list[str] = []
        if start > end:
            start, end = end, start
        last = len(analysis.lines) - 1
        if last < 0:
            return LineRange([], 0, -1, [], ["Document has no lines"])
        clamped_start = min(max(start, 0), last)
        clamped_end = min(max(end, 0), last)
        if (clamped_start, clamped_end) != (start, end):
            warnings.append(f"Range clamped from [{start}, {end}] to [{clamped_start}, {clamped_end}]")

        lines = analysis.lines[clamped_start:clamped_end + 1]
        in_range = {line.block_id for line in lines}
        partial: list[ConceptualUnit] = []
        for line in lines:
            unit = analysis.units.find_unit_for_block(line.block_id)
            if unit is None or unit in partial or not unit.is_multi_block:
                continue
            covered = sum(1 for block_id in unit.block_ids if block_id in in_range)
            if covered < unit.size:
                partial.append(unit)
                warnings.append(
                    f"Range covers {covered} of {unit.size} blocks in {unit.kind} unit '{unit.unit_id}'; "
                    "consider extending it to the whole unit"
                )
        return LineRange(lines, clamped_start, clamped_end, partial, warnings)

    def get_line_context(self, block_id: str, context_lines: int = 2) -> LineContext:
        analysis = self.analyze_document_lines()
        target = analysis.line_for(block_id)
        if target is None:
            raise KeyError(f"Target line {block_id} not found")
        number = target.line_number
        before_start = max(0, number - context_lines)
        after_end = min(len(analysis.lines) - 1, number + context_lines)
        warnings: list[str] = []
        if number - before_start < context_lines:
            warnings.append(
                f"Context truncated at document start (requested {context_lines}, got {number - before_start})"
            )
        if after_end - number < context_lines:
            warnings.append(f"Context truncated at document end (requested {context_lines}, got {after_end - number})")
        return LineContext(
            target=target,
            before=analysis.lines[before_start:number],
            after=analysis.lines[number + 1:after_end + 1],
            warnings=warnings,
        )

    def find_optimal_insertion_point(
        self,
        before_id: str | None = None,
        after_id: str | None = None,
    ) -> InsertionPoint:
        """Pick where to insert relative to the given references.

        ``before_id`` names the line the new content should precede and
        ``after_id`` the line it should follow.
        """

        analysis = self.analyze_document_lines()
        warnings: list[str] = []
        before = analysis.line_for(before_id) if before_id else None
        after = analysis.line_for(after_id) if after_id else None

        if before is not None and after is not None:
            if abs(before.line_number - after.line_number) == 1:
                first = before if before.line_number < after.line_number else after
                return InsertionPoint(first.block_id, "after", warnings)
            warnings.append("Lines are not adjacent, using the 'before' reference")
            return self._anchor(analysis, before, "before", warnings)

        if (before_id and before is None) or (after_id and after is None):
            missing = before_id if before is None and before_id else after_id
            warnings.append(f"Reference line {missing} not found")
        if before is not None:
            return self._anchor(analysis, before, "before", warnings)
        if after is not None:
            return self._anchor(analysis, after, "after", warnings)

        last_top = self._document.top_level_ids()[-1]
        return InsertionPoint(last_top, "after", warnings)

    def _anchor(
        self,
        analysis: DocumentLines,
        reference: LineTarget,
        placement: Placement,
        warnings: list[str],
    ) -> InsertionPoint:
        if not reference.is_part_of_unit:
            return InsertionPoint(reference.block_id, placement, warnings)
        unit = analysis.units.find_unit_for_block(reference.block_id)
        if unit is None:
            return InsertionPoint(reference.block_id, placement, warnings)
        # Only blocks at the unit's own depth are siblings we can insert next to.
        hierarchy = analysis.hierarchy
        peers = [
            block_id
            for block_id in unit.block_ids
            if (entry := hierarchy.entry(block_id)) is not None and entry.level == unit.depth
        ]
        anchor = peers[0] if placement == "before" else peers[-1]
        if anchor != reference.block_id:
            side = "start" if placement == "before" else "end"
            warnings.append(
                f"Reference sits inside {unit.kind} unit '{unit.unit_id}'; inserting at the unit {side} instead"
            )
        return InsertionPoint(anchor, placement, warnings)
