"""Structural analysis of block documents: hierarchy, units and lines."""

from .conceptual_units import (
    ConceptualUnit,
    ConceptualUnitAnalysis,
    ConceptualUnitConfig,
    analyze_conceptual_units,
)
from .hierarchy import HierarchyEntry, HierarchyIndex, analyze_hierarchy
from .line_targeting import InsertionPoint, LineTarget, LineTargetingConfig, LineTargetResolver

__all__ = [
    "ConceptualUnit",
    "ConceptualUnitAnalysis",
    "ConceptualUnitConfig",
    "analyze_conceptual_units",
    "HierarchyEntry",
    "HierarchyIndex",
    "analyze_hierarchy",
    "InsertionPoint",
    "LineTarget",
    "LineTargetingConfig",
    "LineTargetResolver",
]
