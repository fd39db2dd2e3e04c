"""
Pane state for a synchronized editing session.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..errors import MalformedContentError
from ..segmentation.document import SegmentedDocument


class PaneState(str, Enum):
    """Pane lifecycle"""
    ADDED = "added"
    ACTIVE = "active"
    REMOVED = "removed"


def validate_content(content: Any, max_chars: int) -> str:
    """Reject content that cannot be segmented"""
    if not isinstance(content, str):
        raise MalformedContentError(f"Pane content must be str, got {type(content).__name__}")
    if len(content) > max_chars:
        raise MalformedContentError(f"Pane content too large: {len(content)} > {max_chars} characters")
    if "\x00" in content:
        raise MalformedContentError("Pane content contains NUL characters")
    return content


@dataclass
class Pane:
    """One language view of the document"""
    pane_id: str
    language: str
    content: str
    is_source: bool
    document: SegmentedDocument
    state: PaneState = PaneState.ADDED
    generation: int = 0
    cursor_offset: int = 0
    cursor_seq: int = 0
    selection: Optional[Tuple[int, int]] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def warnings(self) -> List[str]:
        return self.document.warnings

    @property
    def degraded(self) -> bool:
        return self.document.degraded

    def clamp(self, offset: int) -> int:
        return min(max(int(offset), 0), len(self.content))

    def replace_content(self, content: str, document: SegmentedDocument) -> int:
        self.content = content
        self.document = document
        self.generation += 1
        self.state = PaneState.ACTIVE
        self.updated_at = time.time()
        self.cursor_offset = self.clamp(self.cursor_offset)
        if self.selection is not None:
            self.selection = (self.clamp(self.selection[0]), self.clamp(self.selection[1]))
        return self.generation

    def move_cursor(self, offset: int) -> int:
        """Set the cursor and return its new sequence number"""
        self.cursor_offset = self.clamp(offset)
        self.cursor_seq += 1
        return self.cursor_seq

    def select(self, start: int, end: int) -> int:
        start, end = sorted((self.clamp(start), self.clamp(end)))
        self.selection = (start, end)
        self.cursor_offset = end
        self.cursor_seq += 1
        return self.cursor_seq

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pane_id": self.pane_id,
            "language": self.language,
            "resolved_language": self.document.language,
            "is_source": self.is_source,
            "state": self.state.value,
            "generation": self.generation,
            "length": len(self.content),
            "sentences": len(self.document),
            "cursor_offset": self.cursor_offset,
            "selection": list(self.selection) if self.selection else None,
            "warnings": list(self.warnings),
        }
