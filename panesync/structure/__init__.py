"""
Structure Module - Structural blocks used as an alignment feature

Exports:
- TextStructureAnalyzer (line scanner with lookahead)
- StructureBlock, StructureTag, StructureCategory, StructureSummary
"""

from .analyzer import (
    StructureBlock,
    StructureCategory,
    StructureSummary,
    StructureTag,
    TextStructureAnalyzer,
)

__all__ = [
    'TextStructureAnalyzer',
    'StructureBlock',
    'StructureCategory',
    'StructureSummary',
    'StructureTag',
]
