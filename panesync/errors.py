"""
PaneSync error hierarchy.

Only session-invariant violations (bad pane ids, pane limits, malformed
content, invalid corrections) cross the public API. The remaining errors are
raised and recovered internally.
"""

from typing import Optional


class PaneSyncError(Exception):
    """Base exception for all PaneSync errors"""
    pass


class UnsupportedLanguageError(PaneSyncError):
    """No profile is registered for the requested language"""
    def __init__(self, language: str):
        self.language = language
        super().__init__(f"Unsupported language: {language!r}")


class InvalidPaneCountError(PaneSyncError):
    """Pane limit exceeded or single-source constraint violated"""
    pass


class PaneNotFoundError(PaneSyncError):
    """Unknown pane id"""
    def __init__(self, pane_id: str):
        self.pane_id = pane_id
        super().__init__(f"Pane not found: {pane_id}")


class AlignmentTimeoutError(PaneSyncError):
    """Alignment computation exceeded its time budget"""
    def __init__(self, pair, timeout: float):
        self.pair = pair
        self.timeout = timeout
        super().__init__(f"Alignment for pair {pair} timed out after {timeout:.2f}s")


class AlignmentCancelledError(PaneSyncError):
    """Alignment computation was cancelled cooperatively"""
    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(f"Alignment cancelled ({reason})" if reason else "Alignment cancelled")


class CacheCorruptionError(PaneSyncError):
    """Stored cache payload failed verification"""
    def __init__(self, key: str, detail: str = ""):
        self.key = key
        self.detail = detail
        super().__init__(f"Corrupted cache entry {key[:12]}: {detail}")


class MalformedContentError(PaneSyncError, ValueError):
    """Pane content rejected by validation"""
    pass


class InvalidCorrectionError(PaneSyncError, ValueError):
    """Correction references sentences outside the current generation"""
    pass
