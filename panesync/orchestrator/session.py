#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pane Session - Multi-pane orchestration

Owns the panes of one editing session (2-4 languages, exactly one source),
re-segments content on every update, aligns each (source, target) pair
through the shared cache, aggregates quality and projects cursor and
selection positions between panes.

Concurrency:
- Session operations are serialized by one asyncio.Lock
- Each pair has at most one alignment task; a newer update cancels the
  older task and its CancellationToken
- Alignment runs in worker threads bounded by a semaphore, with a
  per-computation timeout; a timed-out pair keeps its previous result
  (marked stale) and schedules a retry
"""

import asyncio
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from config.logging_config import get_logger
from config.settings import Settings
from config.settings import settings as default_settings

from ..alignment.cancellation import CancellationToken
from ..alignment.engine import AlignmentEngine
from ..alignment.learning import CorrectionModelRegistry, CorrectionRecord
from ..alignment.models import (
    AlignmentConfig,
    AlignmentEntry,
    AlignmentMethod,
    AlignmentResult,
    AlignmentStatistics,
    ValidationStatus,
)
from ..cache.adaptive_cache import AdaptiveAlignmentCache
from ..cache.fingerprint import compute_alignment_key, compute_config_version, language_pair_tag
from ..errors import (
    AlignmentCancelledError,
    AlignmentTimeoutError,
    InvalidCorrectionError,
    InvalidPaneCountError,
    PaneNotFoundError,
)
from ..language import LanguageProfileRegistry
from ..quality.indicators import QualityCalculator, QualityIndicator
from ..segmentation.boundary_detector import Sentence, SentenceBoundaryDetector
from ..segmentation.document import SegmentedDocument, segment_document
from ..structure.analyzer import TextStructureAnalyzer
from .events import EventChannel, EventType
from .panes import Pane, PaneState, validate_content

logger = get_logger(__name__)

PairKey = Tuple[str, str]

TUNABLE_THRESHOLDS = frozenset({
    "confidence_threshold",
    "auto_validation_threshold",
    "divergence_threshold",
    "max_length_ratio_deviation",
    "gap_penalty",
    "reorder_window",
    "reorder_margin",
})


@dataclass
class PairAlignment:
    """Latest alignment and quality for one (source pane, target pane) pair"""
    source_pane_id: str
    target_pane_id: str
    result: AlignmentResult
    quality: QualityIndicator
    source_generation: int
    target_generation: int
    stale: bool = False
    from_cache: bool = False
    computed_at: float = field(default_factory=time.time)

    @property
    def pair(self) -> PairKey:
        return self.source_pane_id, self.target_pane_id

    @property
    def entries(self) -> List[AlignmentEntry]:
        return self.result.entries

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_pane_id": self.source_pane_id,
            "target_pane_id": self.target_pane_id,
            "source_generation": self.source_generation,
            "target_generation": self.target_generation,
            "stale": self.stale,
            "from_cache": self.from_cache,
            "result": self.result.to_dict(),
            "quality": self.quality.to_dict(),
        }


@dataclass
class QualitySnapshot:
    """Quality of every pair touching a pane, right after an update"""
    pane_id: str
    generation: int
    pairs: Dict[PairKey, QualityIndicator] = field(default_factory=dict)
    stale_pairs: List[PairKey] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def overall_quality(self) -> float:
        if not self.pairs:
            return 0.0
        return sum(q.overall_quality for q in self.pairs.values()) / len(self.pairs)

    @property
    def stale(self) -> bool:
        return bool(self.stale_pairs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pane_id": self.pane_id,
            "generation": self.generation,
            "overall_quality": round(self.overall_quality, 6),
            "pairs": {f"{s}->{t}": q.to_dict() for (s, t), q in self.pairs.items()},
            "stale_pairs": [f"{s}->{t}" for s, t in self.stale_pairs],
            "warnings": list(self.warnings),
        }


class PaneSession:
    """
    Synchronized multi-pane editing session.

    Usage:
        async with PaneSession() as session:
            source = await session.add_pane("en", "Hello world! How are you?", is_source=True)
            target = await session.add_pane("es", "¡Hola mundo! ¿Cómo estás?")
            await session.wait_idle()
            session.get_quality_indicators((source, target))
            await session.synchronize_cursor(source, 3)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        project: str = "default",
        cache: Optional[AdaptiveAlignmentCache] = None,
        registry: Optional[LanguageProfileRegistry] = None,
        models: Optional[CorrectionModelRegistry] = None,
    ):
        self.settings = settings if settings is not None else default_settings
        self.project = project
        self.session_id = uuid.uuid4().hex

        self.alignment_config: AlignmentConfig = self.settings.alignment_config()
        self.engine = AlignmentEngine(self.alignment_config)
        self.detector = SentenceBoundaryDetector(registry, supported_languages=self.settings.supported_languages)
        self.analyzer = TextStructureAnalyzer()
        self.quality = QualityCalculator(
            weights=self.settings.quality_weights(),
            confidence_threshold=self.alignment_config.confidence_threshold,
            boundary_confidence_floor=self.settings.boundary_confidence_floor,
        )
        self.models = models if models is not None else CorrectionModelRegistry(self.alignment_config)

        self._owns_cache = cache is None
        self.cache = cache if cache is not None else AdaptiveAlignmentCache(self.settings.cache_config())
        self.cache.add_alert_listener(self._on_cache_alert)
        self.events = EventChannel(self.settings.event_queue_size)

        self._panes: "OrderedDict[str, Pane]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrent_alignments)
        self._pair_tasks: Dict[PairKey, asyncio.Task] = {}
        self._pair_tokens: Dict[PairKey, CancellationToken] = {}
        self._retry_handles: Dict[PairKey, asyncio.TimerHandle] = {}
        self._alignments: Dict[PairKey, PairAlignment] = {}
        self._overrides: Dict[PairKey, Dict[int, AlignmentEntry]] = {}
        self._timeouts = 0
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        logger.info(f"[Session:{self.session_id[:8]}] Created for project '{project}'")

    async def __aenter__(self) -> "PaneSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Pane lookup
    # ------------------------------------------------------------------

    def _require(self, pane_id: str) -> Pane:
        pane = self._panes.get(pane_id)
        if pane is None:
            raise PaneNotFoundError(pane_id)
        return pane

    def _source_pane(self) -> Optional[Pane]:
        for pane in self._panes.values():
            if pane.is_source:
                return pane
        return None

    def _target_panes(self) -> List[Pane]:
        return [p for p in self._panes.values() if not p.is_source]

    def _pairs_for(self, pane_id: str) -> List[PairKey]:
        source = self._source_pane()
        if source is None:
            return []
        if pane_id == source.pane_id:
            return [(source.pane_id, t.pane_id) for t in self._target_panes()]
        return [(source.pane_id, pane_id)]

    def all_pairs(self) -> List[PairKey]:
        source = self._source_pane()
        if source is None:
            return []
        return [(source.pane_id, t.pane_id) for t in self._target_panes()]

    def get_pane(self, pane_id: str) -> Pane:
        return self._require(pane_id)

    @property
    def panes(self) -> List[Pane]:
        return list(self._panes.values())

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Session {self.session_id} is closed")

    def _segment(self, content: str, language: str, pane_id: str) -> SegmentedDocument:
        return segment_document(content, language, self.detector, self.analyzer, pane_id=pane_id)

    # ------------------------------------------------------------------
    # Pane lifecycle
    # ------------------------------------------------------------------

    async def add_pane(self, language: str, content: str = "", is_source: bool = False) -> str:
        """
        Add a pane and start aligning it.

        Raises:
            InvalidPaneCountError: session full, or a second source pane
            MalformedContentError: content rejected; session unchanged
        """
        self._check_open()
        content = validate_content(content, self.settings.max_content_chars)
        self._loop = asyncio.get_running_loop()

        async with self._lock:
            if len(self._panes) >= self.settings.max_panes:
                raise InvalidPaneCountError(
                    f"Session already holds {len(self._panes)} panes (max {self.settings.max_panes})"
                )
            if is_source and self._source_pane() is not None:
                raise InvalidPaneCountError("Session already has a source pane")

            pane_id = uuid.uuid4().hex
            document = self._segment(content, language, pane_id)
            pane = Pane(pane_id=pane_id, language=language, content=content,
                        is_source=is_source, document=document)
            pane.state = PaneState.ACTIVE
            self._panes[pane_id] = pane

            if self._owns_cache:
                self.cache.start_maintenance()

            logger.info(
                f"[Session:{self.session_id[:8]}] Added {'source' if is_source else 'target'} pane "
                f"{pane_id[:8]} ({document.language}, {len(document)} sentences)"
            )
            for pair in self._pairs_for(pane_id):
                self._schedule_pair(pair, debounce=False)

        return pane_id

    async def update_pane_content(
        self,
        pane_id: str,
        content: str,
        cursor_offset: Optional[int] = None,
    ) -> QualitySnapshot:
        """
        Replace a pane's content and wait for its pairs to realign.

        Updates arriving within the debounce window collapse into one
        computation using the latest content; every caller receives the
        snapshot of that computation.
        """
        self._check_open()
        content = validate_content(content, self.settings.max_content_chars)
        self._loop = asyncio.get_running_loop()

        async with self._lock:
            pane = self._require(pane_id)
            document = self._segment(content, pane.language, pane_id)
            pane.replace_content(content, document)
            if cursor_offset is not None:
                pane.move_cursor(cursor_offset)

            pairs = self._pairs_for(pane_id)
            for pair in pairs:
                self._overrides.pop(pair, None)
                self._schedule_pair(pair, debounce=True)

        await self._await_pairs(pairs)
        return self._snapshot(pane_id)

    async def remove_pane(self, pane_id: str) -> None:
        """Remove a pane, cancelling alignment work that involves it"""
        async with self._lock:
            pane = self._require(pane_id)
            for pair in [p for p in self._known_pairs() if pane_id in p]:
                self._drop_pair(pair, reason="pane removed")
            pane.state = PaneState.REMOVED
            del self._panes[pane_id]
        logger.info(f"[Session:{self.session_id[:8]}] Removed pane {pane_id[:8]}")

    def _known_pairs(self) -> List[PairKey]:
        return list(set(self._pair_tasks) | set(self._alignments) | set(self._retry_handles))

    def _drop_pair(self, pair: PairKey, reason: str) -> None:
        self._cancel_pair(pair, reason)
        self._pair_tasks.pop(pair, None)
        self._pair_tokens.pop(pair, None)
        self._alignments.pop(pair, None)
        self._overrides.pop(pair, None)

    # ------------------------------------------------------------------
    # Pair scheduling
    # ------------------------------------------------------------------

    def _cancel_pair(self, pair: PairKey, reason: str) -> None:
        handle = self._retry_handles.pop(pair, None)
        if handle is not None:
            handle.cancel()
        token = self._pair_tokens.get(pair)
        if token is not None:
            token.cancel(reason)
        task = self._pair_tasks.get(pair)
        if task is not None and not task.done():
            task.cancel()

    def _schedule_pair(
        self,
        pair: PairKey,
        debounce: bool,
        token: Optional[CancellationToken] = None,
    ) -> asyncio.Task:
        if token is None:
            self._cancel_pair(pair, "superseded")
            token = CancellationToken()
        generations = self._generations(pair)
        task = asyncio.ensure_future(self._run_pair(pair, token, generations, debounce))
        self._pair_tokens[pair] = token
        self._pair_tasks[pair] = task
        return task

    def _generations(self, pair: PairKey) -> Tuple[int, int]:
        source, target = self._panes[pair[0]], self._panes[pair[1]]
        return source.generation, target.generation

    def _is_current(self, pair: PairKey, generations: Tuple[int, int]) -> bool:
        if pair[0] not in self._panes or pair[1] not in self._panes:
            return False
        return self._generations(pair) == generations

    async def _await_pairs(self, pairs: Iterable[PairKey]) -> None:
        """Wait until each pair's latest task finishes, following supersession"""
        for pair in pairs:
            while True:
                task = self._pair_tasks.get(pair)
                if task is None:
                    break
                try:
                    await asyncio.shield(task)
                except asyncio.CancelledError:
                    if not task.cancelled():
                        raise
                if self._pair_tasks.get(pair) is task:
                    break

    async def wait_idle(self) -> None:
        """Wait until no alignment task is running (scheduled retries excluded)"""
        while True:
            pending = [t for t in self._pair_tasks.values() if not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    async def _run_pair(
        self,
        pair: PairKey,
        token: CancellationToken,
        generations: Tuple[int, int],
        debounce: bool,
    ) -> None:
        if debounce and self.settings.debounce_ms > 0:
            await asyncio.sleep(self.settings.debounce_ms / 1000.0)
        if not self._is_current(pair, generations):
            return

        source, target = self._panes[pair[0]], self._panes[pair[1]]
        source_doc, target_doc = source.document, target.document

        # A shared computation cancelled by another pair's token is retried once
        for attempt in range(2):
            try:
                value, computed = await self._align_pair(pair, source_doc, target_doc, token)
                break
            except AlignmentCancelledError:
                if token.is_cancelled() or attempt == 1:
                    return
                logger.debug(f"Shared alignment for {pair} was cancelled elsewhere; retrying")
            except AlignmentTimeoutError as e:
                await self._handle_timeout(pair, e, source_doc, target_doc, generations)
                return
            except Exception as e:
                logger.error(f"Alignment for pair {pair} failed: {e}")
                return

        if asyncio.current_task() is not self._pair_tasks.get(pair) or not self._is_current(pair, generations):
            return
        result, quality = value
        self._store(pair, result, quality, source_doc, target_doc, generations,
                    stale=False, from_cache=not computed)

    async def _align_pair(
        self,
        pair: PairKey,
        source_doc: SegmentedDocument,
        target_doc: SegmentedDocument,
        token: CancellationToken,
    ) -> Tuple[Tuple[AlignmentResult, QualityIndicator], bool]:
        model = self.models.get(self.project, source_doc.language, target_doc.language)
        snapshot = model.snapshot()
        key = compute_alignment_key(
            source_doc.text,
            target_doc.text,
            source_doc.language,
            target_doc.language,
            compute_config_version(
                self.alignment_config.fingerprint(),
                snapshot.weights.as_tuple(),
                snapshot.version,
                self.quality.settings(),
            ),
        )
        computed = False

        async def compute():
            nonlocal computed
            computed = True
            async with self._semaphore:
                token.raise_if_cancelled()
                result = await asyncio.to_thread(
                    self.engine.align, source_doc, target_doc,
                    snapshot.weights, token, None, snapshot.version,
                )
            quality = self.quality.calculate(result.entries, source_doc, target_doc, result.unmatched_targets)
            return result, quality

        timeout = self.settings.alignment_timeout_seconds
        try:
            value = await asyncio.wait_for(
                self.cache.get_or_compute(
                    key, compute, tags=(language_pair_tag(source_doc.language, target_doc.language),)
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise AlignmentTimeoutError(pair, timeout)
        return value, computed

    async def _handle_timeout(
        self,
        pair: PairKey,
        error: AlignmentTimeoutError,
        source_doc: SegmentedDocument,
        target_doc: SegmentedDocument,
        generations: Tuple[int, int],
    ) -> None:
        self._timeouts += 1
        logger.warning(f"{error}; serving stale result and retrying in {self.settings.retry_delay_seconds}s")

        previous = self._alignments.get(pair)
        if previous is not None:
            self._alignments[pair] = replace(previous, stale=True)
        else:
            # Nothing to fall back to: position mapping for the new content, off the event loop
            model = self.models.get(self.project, source_doc.language, target_doc.language)
            snapshot = model.snapshot()
            result = await asyncio.to_thread(
                self.engine.align, source_doc, target_doc,
                snapshot.weights, None, AlignmentMethod.POSITION, snapshot.version,
            )
            if asyncio.current_task() is not self._pair_tasks.get(pair) or not self._is_current(pair, generations):
                return
            quality = self.quality.calculate(result.entries, source_doc, target_doc, result.unmatched_targets)
            self._store(pair, result, quality, source_doc, target_doc, generations, stale=True)

        self.events.publish(EventType.PERFORMANCE_ALERT, {
            "reason": "alignment_timeout",
            "source_pane_id": pair[0],
            "target_pane_id": pair[1],
            "timeout_seconds": error.timeout,
            "retry_in_seconds": self.settings.retry_delay_seconds,
        })
        loop = asyncio.get_running_loop()
        self._retry_handles[pair] = loop.call_later(self.settings.retry_delay_seconds, self._retry_pair, pair)

    def _retry_pair(self, pair: PairKey) -> None:
        self._retry_handles.pop(pair, None)
        if self._closed or pair[0] not in self._panes or pair[1] not in self._panes:
            return
        logger.info(f"Retrying alignment for pair {pair}")
        # Keep the token alive so the timed-out computation can still finish
        token = self._pair_tokens.get(pair)
        if token is not None and token.is_cancelled():
            token = None
        self._schedule_pair(pair, debounce=False, token=token)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _apply_overrides(self, pair: PairKey, result: AlignmentResult) -> AlignmentResult:
        overrides = self._overrides.get(pair)
        if not overrides:
            return result
        entries = [overrides.get(e.source_index, e) for e in result.entries]
        used = {e.target_index for e in entries if e.target_index is not None}
        unmatched = [j for j in range(result.target_count) if j not in used]
        return replace(result, entries=entries, unmatched_targets=unmatched)

    def _store(
        self,
        pair: PairKey,
        result: AlignmentResult,
        quality: QualityIndicator,
        source_doc: SegmentedDocument,
        target_doc: SegmentedDocument,
        generations: Tuple[int, int],
        stale: bool,
        from_cache: bool = False,
    ) -> PairAlignment:
        if self._overrides.get(pair):
            result = self._apply_overrides(pair, result)
            quality = self.quality.calculate(result.entries, source_doc, target_doc, result.unmatched_targets)

        previous = self._alignments.get(pair)
        alignment = PairAlignment(
            source_pane_id=pair[0],
            target_pane_id=pair[1],
            result=result,
            quality=quality,
            source_generation=generations[0],
            target_generation=generations[1],
            stale=stale,
            from_cache=from_cache,
        )
        self._alignments[pair] = alignment

        if previous is None or previous.quality.to_dict() != quality.to_dict():
            self.events.publish(EventType.QUALITY_CHANGE, {
                "source_pane_id": pair[0],
                "target_pane_id": pair[1],
                "overall_quality": quality.overall_quality,
                "previous_quality": previous.quality.overall_quality if previous else None,
                "problem_count": len(quality.problem_areas),
                "stale": stale,
            })
        return alignment

    def _snapshot(self, pane_id: str) -> QualitySnapshot:
        pane = self._panes.get(pane_id)
        snapshot = QualitySnapshot(
            pane_id=pane_id,
            generation=pane.generation if pane else -1,
            warnings=list(pane.warnings) if pane else [],
        )
        for pair in self._pairs_for(pane_id) if pane else []:
            alignment = self._alignments.get(pair)
            if alignment is None:
                continue
            snapshot.pairs[pair] = alignment.quality
            if alignment.stale:
                snapshot.stale_pairs.append(pair)
        return snapshot

    def get_alignments(self, pair: PairKey) -> Optional[PairAlignment]:
        self._require(pair[0])
        self._require(pair[1])
        return self._alignments.get(pair)

    def get_quality_indicators(
        self, pair: Optional[PairKey] = None
    ) -> Union[QualityIndicator, Dict[PairKey, QualityIndicator]]:
        """
        Quality for one pair, or for every aligned pair when pair is None.

        A pair that has not been aligned yet reports an all-zero indicator.
        """
        if pair is not None:
            alignment = self.get_alignments(pair)
            return alignment.quality if alignment else QualityIndicator()
        return {p: a.quality for p, a in self._alignments.items()}

    def get_statistics(self) -> Dict[str, Any]:
        pairs = {}
        for (s, t), alignment in self._alignments.items():
            stats = AlignmentStatistics.from_entries(
                alignment.entries,
                self.alignment_config.confidence_threshold,
                processing_time_ms=alignment.result.processing_time_ms,
                language_pair=(self._panes[s].document.language, self._panes[t].document.language),
            )
            pairs[f"{s}->{t}"] = {**stats.to_dict(), "stale": alignment.stale,
                                  "overall_quality": round(alignment.quality.overall_quality, 4)}
        return {
            "session_id": self.session_id,
            "panes": [p.to_dict() for p in self._panes.values()],
            "pairs": pairs,
            "timeouts": self._timeouts,
            "events_dropped": self.events.dropped_count,
            "cache": self.cache.stats().to_dict(),
        }

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------

    async def apply_user_correction(
        self,
        pair: PairKey,
        original: AlignmentEntry,
        corrected: AlignmentEntry,
        reason: str = "",
    ) -> CorrectionRecord:
        """
        Learn from a user correction and pin the corrected mapping.

        The corrected entry is marked validated and stays in place until
        either pane's content changes.

        Raises:
            PaneNotFoundError: unknown pane in pair
            InvalidCorrectionError: entries do not fit the current content
        """
        async with self._lock:
            source, target = self._require(pair[0]), self._require(pair[1])
            if not source.is_source or target.is_source:
                raise InvalidCorrectionError(f"Pair {pair} is not a (source, target) pair")
            if original.source_index != corrected.source_index:
                raise InvalidCorrectionError("Original and corrected entries must share a source index")

            source_doc, target_doc = source.document, target.document
            for entry in (original, corrected):
                if not 0 <= entry.source_index < len(source_doc):
                    raise InvalidCorrectionError(f"Source sentence {entry.source_index} does not exist")
                if entry.target_index is not None and not 0 <= entry.target_index < len(target_doc):
                    raise InvalidCorrectionError(f"Target sentence {entry.target_index} does not exist")

            model = self.models.get(self.project, source_doc.language, target_doc.language)
            record = self.engine.learn_from_correction(model, source_doc, target_doc, original, corrected, reason)

            features = self.engine.features(source_doc, target_doc, corrected.source_index, corrected.target_index)
            pinned = AlignmentEntry(
                source_index=corrected.source_index,
                target_index=corrected.target_index,
                confidence=model.weights.score(features) if corrected.target_index is not None else 0.0,
                method=corrected.method,
                status=ValidationStatus.VALIDATED,
            )
            self._overrides.setdefault(pair, {})[pinned.source_index] = pinned

            current = self._alignments.get(pair)
            if current is not None and self._is_current(pair, (current.source_generation, current.target_generation)):
                self._store(pair, current.result, current.quality, source_doc, target_doc,
                            (current.source_generation, current.target_generation),
                            stale=current.stale, from_cache=current.from_cache)

        logger.info(
            f"Correction on {pair}: sentence {corrected.source_index} "
            f"{original.target_index} -> {corrected.target_index} (model v{record.version})"
        )
        return record

    # ------------------------------------------------------------------
    # Cursor / selection sync
    # ------------------------------------------------------------------

    def _usable(self, alignment: Optional[PairAlignment], entry: Optional[AlignmentEntry], pair: PairKey) -> bool:
        if alignment is None or entry is None or entry.target_index is None:
            return False
        if not self._is_current(pair, (alignment.source_generation, alignment.target_generation)):
            return False
        return entry.validated or entry.confidence >= self.alignment_config.confidence_threshold

    @staticmethod
    def _interpolate(origin: Sentence, destination: Sentence, offset: int) -> int:
        relative = (offset - origin.start) / max(origin.length, 1)
        relative = min(max(relative, 0.0), 1.0)
        return min(destination.start + int(round(relative * destination.length)), destination.end)

    @staticmethod
    def _proportional(offset: int, origin_length: int, destination_length: int) -> int:
        if origin_length <= 0:
            return 0
        return min(int(round(offset / origin_length * destination_length)), destination_length)

    def _project_forward(self, pair: PairKey, offset: int) -> int:
        """Source offset to target offset"""
        source, target = self._panes[pair[0]], self._panes[pair[1]]
        alignment = self._alignments.get(pair)
        index = source.document.sentence_at(offset)
        entry = alignment.result.entry_for(index) if alignment and index is not None else None
        if self._usable(alignment, entry, pair):
            return self._interpolate(source.document.sentences[index],
                                     target.document.sentences[entry.target_index], offset)
        return self._proportional(offset, len(source.content), len(target.content))

    def _project_backward(self, pair: PairKey, offset: int) -> int:
        """Target offset to source offset"""
        source, target = self._panes[pair[0]], self._panes[pair[1]]
        alignment = self._alignments.get(pair)
        index = target.document.sentence_at(offset)
        entry = None
        if alignment is not None and index is not None:
            entry = next((e for e in alignment.entries if e.target_index == index), None)
        if self._usable(alignment, entry, pair):
            return self._interpolate(target.document.sentences[index],
                                     source.document.sentences[entry.source_index], offset)
        return self._proportional(offset, len(target.content), len(source.content))

    def _project(self, pane: Pane, offset: int) -> Dict[str, int]:
        source = self._source_pane()
        positions: Dict[str, int] = {}
        if source is None:
            for other in self._panes.values():
                if other.pane_id != pane.pane_id:
                    positions[other.pane_id] = self._proportional(offset, len(pane.content), len(other.content))
            return positions

        if pane.pane_id == source.pane_id:
            source_offset = offset
        else:
            source_offset = self._project_backward((source.pane_id, pane.pane_id), offset)
            positions[source.pane_id] = source_offset

        for target in self._target_panes():
            if target.pane_id != pane.pane_id:
                positions[target.pane_id] = self._project_forward((source.pane_id, target.pane_id), source_offset)
        return positions

    async def synchronize_cursor(self, pane_id: str, offset: int) -> Dict[str, int]:
        """
        Project a cursor offset onto every other pane.

        Returns:
            Mapping of pane id to offset in that pane
        """
        async with self._lock:
            pane = self._require(pane_id)
            sequence = pane.move_cursor(offset)
            positions = self._project(pane, pane.cursor_offset)
            self.events.publish(EventType.SYNC_UPDATE, {
                "kind": "cursor",
                "origin_pane_id": pane_id,
                "offset": pane.cursor_offset,
                "positions": dict(positions),
                "sequence": sequence,
            }, pane_id=pane_id)
        return positions

    async def synchronize_selection(self, pane_id: str, start: int, end: int) -> Dict[str, Tuple[int, int]]:
        """Project both ends of a selection onto every other pane"""
        async with self._lock:
            pane = self._require(pane_id)
            sequence = pane.select(start, end)
            start, end = pane.selection
            starts, ends = self._project(pane, start), self._project(pane, end)
            ranges = {pid: tuple(sorted((starts[pid], ends[pid]))) for pid in starts}
            self.events.publish(EventType.SYNC_UPDATE, {
                "kind": "selection",
                "origin_pane_id": pane_id,
                "selection": [start, end],
                "ranges": {pid: list(r) for pid, r in ranges.items()},
                "sequence": sequence,
            }, pane_id=pane_id)
        return ranges

    # ------------------------------------------------------------------
    # Tuning / teardown
    # ------------------------------------------------------------------

    async def tune_thresholds(self, **changes) -> AlignmentConfig:
        """
        Adjust alignment thresholds mid-session and realign every pair.

        Accepted keys: confidence_threshold, auto_validation_threshold,
        divergence_threshold, max_length_ratio_deviation, gap_penalty,
        reorder_window, reorder_margin.
        """
        unknown = set(changes) - TUNABLE_THRESHOLDS
        if unknown:
            raise ValueError(f"Not tunable mid-session: {sorted(unknown)}")

        async with self._lock:
            self.alignment_config = self.alignment_config.with_thresholds(**changes)
            self.engine = AlignmentEngine(self.alignment_config)
            self.quality.confidence_threshold = self.alignment_config.confidence_threshold
            pairs = self.all_pairs()
            for pair in pairs:
                self._schedule_pair(pair, debounce=False)
        logger.info(f"[Session:{self.session_id[:8]}] Thresholds tuned: {changes}")
        await self._await_pairs(pairs)
        return self.alignment_config

    def tune_cache(self, max_entries: Optional[int] = None, max_memory_bytes: Optional[int] = None) -> int:
        return self.cache.resize(max_entries=max_entries, max_memory_bytes=max_memory_bytes)

    def _on_cache_alert(self, alert: Dict[str, Any]) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(self.events.publish, EventType.PERFORMANCE_ALERT, dict(alert))
                return
        self.events.publish(EventType.PERFORMANCE_ALERT, dict(alert))

    async def close(self) -> None:
        """Cancel all alignment work and release the cache listener"""
        if self._closed:
            return
        self._closed = True
        for pair in self._known_pairs():
            self._cancel_pair(pair, "session closed")
        pending = [t for t in self._pair_tasks.values() if not t.done()]
        if pending:
            await asyncio.wait(pending)

        self.cache.remove_alert_listener(self._on_cache_alert)
        if self._owns_cache:
            await self.cache.stop_maintenance()
        for pane in self._panes.values():
            pane.state = PaneState.REMOVED
        self._panes.clear()
        self._pair_tasks.clear()
        self._pair_tokens.clear()
        logger.info(f"[Session:{self.session_id[:8]}] Closed")
