#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Text Structure Analyzer - Detect structural blocks in raw pane content.

Line-oriented scan with lookahead for multi-line constructs:
- Headings (ATX and setext, by level)
- List items (ordered, unordered, task) with nesting
- Fenced and indented code blocks
- Pipe tables (row followed by a separator row)
- Block quotes (by depth)
- Paragraphs (everything else, consecutive lines)

Each detected sentence is then tagged with the block containing its start.
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from config.logging_config import get_logger

from .patterns import (
    is_fenced_code_end,
    is_fenced_code_start,
    is_horizontal_rule,
    is_indented_code,
    is_list_continuation,
    is_table_row,
    is_table_separator,
    iter_lines,
    match_atx_heading,
    match_blockquote,
    match_list_item,
    setext_level,
)

logger = get_logger(__name__)


class StructureCategory(str, Enum):
    """Structural category of a block"""
    HEADING = "heading"
    LIST_ITEM = "list_item"
    CODE = "code"
    TABLE = "table"
    QUOTE = "quote"
    PARAGRAPH = "paragraph"


@dataclass
class StructureBlock:
    """
    A structural element of the content.

    level: heading level (1-6), list nesting (0 = top), quote depth (>= 1);
    0 for the other categories.
    """
    category: StructureCategory
    start: int
    end: int
    line_start: int
    line_end: int
    level: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self):
        return f"<{self.category.value} L{self.level} [{self.start}:{self.end}]>"


@dataclass(frozen=True)
class StructureTag:
    """Structural category of one sentence"""
    sentence_index: int
    category: StructureCategory
    level: int = 0
    list_kind: Optional[str] = None

    def similarity(self, other: Optional["StructureTag"]) -> float:
        """1.0 same category and level, 0.75 same category, else 0.0"""
        if other is None or other.category != self.category:
            return 0.0
        return 1.0 if other.level == self.level else 0.75

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "sentence_index": self.sentence_index,
            "category": self.category.value,
            "level": self.level,
        }
        if self.list_kind:
            data["list_kind"] = self.list_kind
        return data


@dataclass
class StructureSummary:
    """Summary statistics for analyzed content"""
    counts: Dict[str, int] = field(default_factory=dict)
    headings_by_level: Dict[int, int] = field(default_factory=dict)
    word_count: int = 0
    char_count: int = 0
    max_depth: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": dict(self.counts),
            "headings_by_level": dict(self.headings_by_level),
            "word_count": self.word_count,
            "char_count": self.char_count,
            "max_depth": self.max_depth,
        }


class TextStructureAnalyzer:
    """
    Detect structure blocks and tag sentences with them.

    Usage:
        analyzer = TextStructureAnalyzer()
        blocks = analyzer.analyze(text)
        tags = analyzer.tag_sentences(blocks, sentences)
    """

    def analyze(self, text: str) -> List[StructureBlock]:
        if not text or not text.strip():
            return []

        lines = list(iter_lines(text))
        blocks: List[StructureBlock] = []
        n = len(lines)
        i = 0
        prev_blank = True

        while i < n:
            line = lines[i][1]

            if not line.strip():
                prev_blank = True
                i += 1
                continue

            last = blocks[-1].category if blocks else None

            # Fenced code runs until its closing fence (or end of text)
            is_fence, fence, language = is_fenced_code_start(line)
            if is_fence:
                j = i + 1
                while j < n and not is_fenced_code_end(lines[j][1], fence):
                    j += 1
                end_line = min(j, n - 1)
                blocks.append(self._block(
                    StructureCategory.CODE, lines, i, end_line,
                    metadata={"fenced": True, "language": language},
                ))
                i = end_line + 1
                prev_blank = False
                continue

            # Table: a row line followed by a separator line
            if is_table_row(line) and i + 1 < n and is_table_separator(lines[i + 1][1]):
                j = i + 2
                while j < n and is_table_row(lines[j][1]):
                    j += 1
                blocks.append(self._block(
                    StructureCategory.TABLE, lines, i, j - 1,
                    metadata={"rows": j - i - 1},
                ))
                i = j
                prev_blank = False
                continue

            heading = match_atx_heading(line)
            if heading:
                blocks.append(self._block(StructureCategory.HEADING, lines, i, i, level=heading[0]))
                i += 1
                prev_blank = False
                continue

            # Indented code only after a blank line and outside lists
            if prev_blank and last != StructureCategory.LIST_ITEM and is_indented_code(line):
                j = i + 1
                last_code = i
                while j < n and (is_indented_code(lines[j][1]) or not lines[j][1].strip()):
                    if lines[j][1].strip():
                        last_code = j
                    j += 1
                blocks.append(self._block(
                    StructureCategory.CODE, lines, i, last_code, metadata={"fenced": False},
                ))
                i = last_code + 1
                prev_blank = False
                continue

            if is_horizontal_rule(line):
                i += 1
                prev_blank = True
                continue

            item = match_list_item(line)
            if item:
                list_kind, level, marker, _ = item
                j = i + 1
                while j < n and is_list_continuation(lines[j][1], level):
                    j += 1
                metadata = {"list_kind": list_kind, "marker": marker}
                if list_kind == "task":
                    metadata["checked"] = "[x]" in line.lower()
                blocks.append(self._block(
                    StructureCategory.LIST_ITEM, lines, i, j - 1, level=level, metadata=metadata,
                ))
                i = j
                prev_blank = False
                continue

            quote = match_blockquote(line)
            if quote:
                depth = quote[0]
                j = i + 1
                while j < n:
                    following = match_blockquote(lines[j][1])
                    if following is None or following[0] != depth:
                        break
                    j += 1
                blocks.append(self._block(StructureCategory.QUOTE, lines, i, j - 1, level=depth))
                i = j
                prev_blank = False
                continue

            # Setext heading: single text line underlined by === or ---
            if i + 1 < n:
                underline = setext_level(lines[i + 1][1])
                if underline:
                    blocks.append(self._block(
                        StructureCategory.HEADING, lines, i, i + 1, level=underline,
                        metadata={"setext": True},
                    ))
                    i += 2
                    prev_blank = False
                    continue

            # Paragraph: consecutive lines until a blank line or another construct
            j = i + 1
            while j < n and not self._starts_block(lines, j):
                j += 1
            blocks.append(self._block(StructureCategory.PARAGRAPH, lines, i, j - 1))
            i = j
            prev_blank = False

        return blocks

    @staticmethod
    def _starts_block(lines, j: int) -> bool:
        line = lines[j][1]
        if not line.strip():
            return True
        if is_fenced_code_start(line)[0] or match_atx_heading(line) or is_horizontal_rule(line):
            return True
        if match_list_item(line) or match_blockquote(line):
            return True
        if setext_level(line):
            return True
        return is_table_row(line) and j + 1 < len(lines) and is_table_separator(lines[j + 1][1])

    @staticmethod
    def _block(category, lines, first: int, last: int, level: int = 0,
               metadata: Optional[Dict[str, Any]] = None) -> StructureBlock:
        start = lines[first][0] + (len(lines[first][1]) - len(lines[first][1].lstrip()))
        end = lines[last][0] + len(lines[last][1])
        return StructureBlock(
            category=category,
            start=start,
            end=end,
            line_start=first,
            line_end=last,
            level=level,
            metadata=metadata or {},
        )

    def tag_sentences(self, blocks: Sequence[StructureBlock], sentences: Sequence) -> List[StructureTag]:
        """
        Tag each sentence with the block containing its start offset.

        Sentences outside any block default to a paragraph tag.
        """
        starts = [b.start for b in blocks]
        tags: List[StructureTag] = []
        for sentence in sentences:
            pos = bisect_right(starts, sentence.start) - 1
            block = blocks[pos] if pos >= 0 else None
            if block is None or sentence.start > block.end:
                tags.append(StructureTag(sentence.index, StructureCategory.PARAGRAPH))
                continue
            tags.append(StructureTag(
                sentence_index=sentence.index,
                category=block.category,
                level=block.level,
                list_kind=block.metadata.get("list_kind"),
            ))
        return tags

    def summarize(self, text: str, blocks: Optional[Sequence[StructureBlock]] = None) -> StructureSummary:
        if blocks is None:
            blocks = self.analyze(text)

        summary = StructureSummary(
            counts={category.value: 0 for category in StructureCategory},
            word_count=len(text.split()) if text else 0,
            char_count=len(text) if text else 0,
        )
        for block in blocks:
            summary.counts[block.category.value] += 1
            if block.category == StructureCategory.HEADING:
                summary.headings_by_level[block.level] = summary.headings_by_level.get(block.level, 0) + 1
            elif block.category == StructureCategory.LIST_ITEM:
                summary.max_depth = max(summary.max_depth, block.level + 1)
            elif block.category == StructureCategory.QUOTE:
                summary.max_depth = max(summary.max_depth, block.level)

        logger.debug(f"Structure summary: {summary.counts}")
        return summary

