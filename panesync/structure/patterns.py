#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Structure Patterns - Line-level regex patterns for Markdown-like pane content.

Coverage:
- ATX headings (# .. ######) and setext underlines (=== / ---)
- Unordered, ordered and task list items with indentation nesting
- Fenced (``` / ~~~) and indented code blocks
- Pipe-delimited tables with separator rows
- Block quotes with nesting (> > ...)
- Horizontal rules
"""

import re
from typing import Iterable, Optional, Tuple


# =============================================================================
# LINE ITERATION
# =============================================================================

def iter_lines(text: str) -> Iterable[Tuple[int, str]]:
    """Yield (offset, line) pairs, without line terminators"""
    offset = 0
    for raw in text.split("\n"):
        line = raw[:-1] if raw.endswith("\r") else raw
        yield offset, line
        offset += len(raw) + 1


# =============================================================================
# HEADING PATTERNS
# =============================================================================

# Groups: (1) hashes, (2) title
ATX_HEADING_PATTERN = re.compile(r'^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t#]*$')

SETEXT_H1_PATTERN = re.compile(r'^ {0,3}=+[ \t]*$')
SETEXT_H2_PATTERN = re.compile(r'^ {0,3}-+[ \t]*$')


def match_atx_heading(line: str) -> Optional[Tuple[int, str]]:
    """
    Check if line is an ATX heading.

    Returns:
        (level, title) or None
    """
    match = ATX_HEADING_PATTERN.match(line)
    if not match:
        return None
    return len(match.group(1)), (match.group(2) or '').strip()


def setext_level(line: str) -> int:
    """Heading level for a setext underline, 0 if not an underline"""
    if SETEXT_H1_PATTERN.match(line):
        return 1
    if SETEXT_H2_PATTERN.match(line):
        return 2
    return 0


# =============================================================================
# LIST PATTERNS
# =============================================================================

# Groups: (1) indent, (2) marker, (3) check state, (4) content
TASK_ITEM_PATTERN = re.compile(r'^(\s*)([-*+])\s+\[([ xX])\]\s+(.*)$')

# Groups: (1) indent, (2) marker, (3) content
UNORDERED_ITEM_PATTERN = re.compile(r'^(\s*)([-*+•])\s+(.+)$')
ORDERED_ITEM_PATTERN = re.compile(r'^(\s*)(\d{1,9}[.)])\s+(.+)$')

INDENT_SPACES_PER_LEVEL = 2  # 2 spaces = 1 nesting level
INDENT_TAB_SPACES = 4        # 1 tab = 4 spaces = 2 levels


def calculate_indent_level(line: str) -> int:
    """
    Calculate nesting level from leading whitespace.

    Args:
        line: Line with potential leading whitespace

    Returns:
        Nesting level (0 = top level)
    """
    if not line:
        return 0

    stripped = line.lstrip()
    if not stripped:
        return 0

    indent_chars = len(line) - len(stripped)

    # Convert tabs to spaces
    expanded = line[:indent_chars].expandtabs(INDENT_TAB_SPACES)
    return len(expanded) // INDENT_SPACES_PER_LEVEL


def match_list_item(line: str) -> Optional[Tuple[str, int, str, str]]:
    """
    Check if line is a list item.

    Returns:
        (list_kind, indent_level, marker, content) or None.
        list_kind is "task", "unordered" or "ordered".
    """
    match = TASK_ITEM_PATTERN.match(line)
    if match:
        return "task", calculate_indent_level(match.group(1) + 'x'), match.group(2), match.group(4)

    # "---" and "* * *" are rules, not items
    if is_horizontal_rule(line):
        return None

    match = UNORDERED_ITEM_PATTERN.match(line)
    if match:
        return "unordered", calculate_indent_level(match.group(1) + 'x'), match.group(2), match.group(3)

    match = ORDERED_ITEM_PATTERN.match(line)
    if match:
        return "ordered", calculate_indent_level(match.group(1) + 'x'), match.group(2), match.group(3)

    return None


def is_list_continuation(line: str, item_level: int) -> bool:
    """Indented, non-marker line that continues the previous list item"""
    if not line.strip():
        return False
    if match_list_item(line) is not None:
        return False
    return calculate_indent_level(line) > item_level


# =============================================================================
# CODE PATTERNS
# =============================================================================

# Groups: (1) fence, (2) info string
FENCED_CODE_START = re.compile(r'^ {0,3}(`{3,}|~{3,})\s*([\w+#.-]*)\s*$')

INDENTED_CODE_PATTERN = re.compile(r'^(    |\t)(.*\S.*)$')


def is_fenced_code_start(line: str) -> Tuple[bool, str, str]:
    """
    Returns:
        (is_fence, fence_marker, language)
    """
    match = FENCED_CODE_START.match(line)
    if match:
        return True, match.group(1), match.group(2) or ''
    return False, '', ''


def is_fenced_code_end(line: str, fence: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and stripped[0] == fence[0] and set(stripped) == {fence[0]} \
        and len(stripped) >= len(fence)


def is_indented_code(line: str) -> bool:
    return bool(INDENTED_CODE_PATTERN.match(line))


# =============================================================================
# TABLE PATTERNS
# =============================================================================

# Line that looks like a table row: | cell | cell |
TABLE_ROW_PATTERN = re.compile(r'^\s*\|.*\|\s*$')

# Separator line: |---|---| or |:--|:--:|
TABLE_SEPARATOR_PATTERN = re.compile(r'^\s*\|?[\s\-:|]+\|?\s*$')

# Individual separator cell: ---, :---, :---:, ---:
TABLE_ALIGN_PATTERN = re.compile(r'^:?-+:?$')


def is_table_row(line: str) -> bool:
    return bool(TABLE_ROW_PATTERN.match(line))


def is_table_separator(line: str) -> bool:
    """Check if line is a table separator row."""
    if '-' not in line or not TABLE_SEPARATOR_PATTERN.match(line):
        return False

    line = line.strip()
    if line.startswith('|'):
        line = line[1:]
    if line.endswith('|'):
        line = line[:-1]

    cells = [cell.strip() for cell in line.split('|')]
    return bool(cells) and all(TABLE_ALIGN_PATTERN.match(cell) for cell in cells if cell)


# =============================================================================
# QUOTE / RULE PATTERNS
# =============================================================================

# Groups: (1) markers, (2) content
BLOCKQUOTE_PATTERN = re.compile(r'^ {0,3}((?:>\s?)+)(.*)$')

HORIZONTAL_RULE_PATTERN = re.compile(r'^ {0,3}([-*_])(?:\s*\1){2,}\s*$')


def match_blockquote(line: str) -> Optional[Tuple[int, str]]:
    """
    Returns:
        (depth, content) or None
    """
    match = BLOCKQUOTE_PATTERN.match(line)
    if not match:
        return None
    return match.group(1).count('>'), match.group(2)


def is_horizontal_rule(line: str) -> bool:
    return bool(HORIZONTAL_RULE_PATTERN.match(line))
