"""
Centralized constants for PaneSync.
All tunable defaults live here; Settings reads them as field defaults.
"""

# ===========================================
# SESSION / PANES
# ===========================================
MIN_PANES = 2
MAX_PANES = 4
DEFAULT_LANGUAGE = 'en'
SUPPORTED_LANGUAGES = ['en', 'es', 'fr', 'de', 'it', 'pt', 'vi', 'zh', 'ja']
DEBOUNCE_MS = 100                     # collapse rapid content updates
ALIGNMENT_TIMEOUT_SECONDS = 5.0       # per pair computation
RETRY_DELAY_SECONDS = 1.0             # retry after a timed out computation
EVENT_QUEUE_SIZE = 256                # bounded per-session event channel
MAX_CONTENT_CHARS = 2_000_000         # larger pane content is rejected
MAX_CONCURRENT_ALIGNMENTS = 4         # worker slots shared by pairs

# ===========================================
# ALIGNMENT
# ===========================================
POSITION_WEIGHT = 0.4
LENGTH_WEIGHT = 0.3
STRUCTURE_WEIGHT = 0.2
CONTENT_WEIGHT = 0.1
CONFIDENCE_THRESHOLD = 0.7
MAX_LENGTH_RATIO_DEVIATION = 2.0
DIVERGENCE_THRESHOLD = 0.2            # relative sentence count difference
GAP_PENALTY = 0.45                    # DP cost of an unmatched sentence
AUTO_VALIDATION_THRESHOLD = 0.9
LEARNING_RATE = 0.05
CORRECTION_HISTORY_SIZE = 1000
REORDER_WINDOW = 8                    # matched entries a crossing may span; 0 disables
REORDER_MARGIN = 0.25                 # evidence gain a crossing needs over monotonic order

# ===========================================
# QUALITY
# ===========================================
QUALITY_POSITION_WEIGHT = 1.0 / 3.0
QUALITY_LENGTH_WEIGHT = 1.0 / 3.0
QUALITY_STRUCTURE_WEIGHT = 1.0 / 3.0
BOUNDARY_CONFIDENCE_FLOOR = 0.5       # weaker boundaries are flagged
LENGTH_MISMATCH_RATIO = 2.0           # actual/expected beyond x2 or /2

# ===========================================
# CACHE
# ===========================================
CACHE_MAX_ENTRIES = 10_000
CACHE_MAX_MEMORY_MB = 256
CACHE_TTL_SECONDS = 3600              # 1 hour
CACHE_CLEANUP_INTERVAL = 300          # 5 minutes
CACHE_COMPRESSION_THRESHOLD = 8192    # bytes
CACHE_SHARDS = 8
CACHE_MEMORY_ALERT_PERCENT = 85.0
CACHE_ENTRY_OVERHEAD_BYTES = 256      # bookkeeping estimate per entry

# ===========================================
# LOGGING
# ===========================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/panesync.log'
LOG_MAX_SIZE_MB = 10
LOG_BACKUP_COUNT = 5
