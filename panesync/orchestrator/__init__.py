"""
Orchestrator Module - Multi-pane session management

Exports:
- PaneSession (pane lifecycle, pair alignment, cursor/selection sync)
- PairAlignment, QualitySnapshot (per-pair results)
- Pane, PaneState
- EventChannel, EventType, SessionEvent (bounded notification queue)
"""

from .events import EventChannel, EventType, SessionEvent
from .panes import Pane, PaneState, validate_content
from .session import PairAlignment, PaneSession, QualitySnapshot

__all__ = [
    'PaneSession',
    'PairAlignment',
    'QualitySnapshot',
    'Pane',
    'PaneState',
    'validate_content',
    'EventChannel',
    'EventType',
    'SessionEvent',
]
