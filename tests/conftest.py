"""
Pytest configuration and shared fixtures for PaneSync tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import Settings
from panesync.alignment import AlignmentConfig, AlignmentEngine
from panesync.quality import QualityCalculator
from panesync.segmentation import SentenceBoundaryDetector, segment_document


# ============================================================================
# Sample texts
# ============================================================================

EN_GREETING = "Hello world! How are you today? I hope you're doing well."
ES_GREETING = "¡Hola mundo! ¿Cómo estás hoy? Espero que estés bien."
ES_GREETING_MISSING = "¡Hola mundo! Espero que estés bien."

EN_MEETING = "The meeting starts now. Did you bring the report? We will review it together."
ES_MEETING_SWAPPED = "La reunión empieza ahora. Lo revisaremos junto. ¿Trajiste el informe?"

# Reordered, but every sentence ends with a period
EN_REPORT = "The meeting starts now. We brought the report. We will review it together."
ES_REPORT_SWAPPED = "La reunión empieza ahora. Lo revisaremos juntos. Trajimos el informe."

EN_MARKDOWN = """# Project Overview

This guide explains the setup. It covers two steps.

- Install the package.
- Run the tests.

> Keep the logs short.

```python
print("hello")
```
"""


@pytest.fixture
def en_greeting() -> str:
    return EN_GREETING


@pytest.fixture
def es_greeting() -> str:
    return ES_GREETING


@pytest.fixture
def es_greeting_missing() -> str:
    return ES_GREETING_MISSING


@pytest.fixture
def en_meeting() -> str:
    return EN_MEETING


@pytest.fixture
def es_meeting_swapped() -> str:
    return ES_MEETING_SWAPPED


@pytest.fixture
def en_report() -> str:
    return EN_REPORT


@pytest.fixture
def es_report_swapped() -> str:
    return ES_REPORT_SWAPPED


@pytest.fixture
def en_markdown() -> str:
    return EN_MARKDOWN


# ============================================================================
# Fixtures: Configuration & Components
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timings for session tests"""
    return Settings(
        debounce_ms=20,
        alignment_timeout_seconds=5.0,
        retry_delay_seconds=0.05,
        event_queue_size=64,
        cache_max_entries=256,
        cache_shards=4,
    )


@pytest.fixture
def detector() -> SentenceBoundaryDetector:
    return SentenceBoundaryDetector()


@pytest.fixture
def alignment_config() -> AlignmentConfig:
    return AlignmentConfig()


@pytest.fixture
def engine(alignment_config) -> AlignmentEngine:
    return AlignmentEngine(alignment_config)


@pytest.fixture
def quality_calculator() -> QualityCalculator:
    return QualityCalculator()


@pytest.fixture
def segment():
    """Segment text into a SegmentedDocument"""
    def _segment(text: str, language: str):
        return segment_document(text, language)
    return _segment
