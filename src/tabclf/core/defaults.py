"""Centralised default constants for tabclf.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Categories ──
UNCATEGORIZED: Final[str] = "uncategorized"
LEGACY_OTHER: Final[str] = "other"

# ── Classification cascade thresholds ──
EXPLICIT_MAPPING_CONFIDENCE: Final[float] = 1.0
LEARNED_THRESHOLD: Final[float] = 0.7
CONTEXT_THRESHOLD: Final[float] = 0.6
CONTENT_THRESHOLD: Final[float] = 0.5

LEARNED_MAX_CONFIDENCE: Final[float] = 0.95
LEARNED_TIME_WEIGHT: Final[float] = 0.5
LEARNED_COOCCURRENCE_WEIGHT: Final[float] = 0.3
CONTEXT_VOTE_WEIGHT: Final[float] = 0.8
CONTEXT_MAX_CONFIDENCE: Final[float] = 0.8
CONTENT_MAX_CONFIDENCE: Final[float] = 0.7
CONTENT_SCORE_DIVISOR: Final[float] = 3.0

CATEGORY_DOMAIN_CONFIDENCE: Final[float] = 0.4
CATEGORY_KEYWORD_CONFIDENCE: Final[float] = 0.35
FALLBACK_DOMAIN_CONFIDENCE: Final[float] = 0.4
UNCATEGORIZED_CONFIDENCE: Final[float] = 0.3
MAX_ALTERNATIVES: Final[int] = 3

# ── Pattern store ──
CONTEXT_DOMAIN_CAP: Final[int] = 50
MAX_DOMAIN_LENGTH: Final[int] = 255

# ── Similarity ──
DUPLICATE_TITLE_SIMILARITY: Final[float] = 0.8
SATELLITE_MIN_OVERLAP: Final[float] = 0.3
MIN_KEYWORD_LENGTH: Final[int] = 3

# ── Planning ──
DEFAULT_MIN_GROUP_SIZE: Final[int] = 2
DETECTOR_MIN_CLAIM: Final[int] = 2
COMPACT_LABEL_MAX_CHARS: Final[int] = 3

# ── Execution ──
UNGROUP_BATCH_SIZE: Final[int] = 10
BUSY_MESSAGE: Final[str] = "Organization already in progress"
NO_UNDO_MESSAGE: Final[str] = "No organize operation to undo"

# ── Store keys ──
KEY_CATEGORIES: Final[str] = "categories"
KEY_CATEGORY_MAPPING: Final[str] = "categoryMapping"
KEY_ORGANIZE_CONFIG: Final[str] = "smartOrganizeConfig"
KEY_USER_PATTERNS: Final[str] = "userPatterns"
KEY_CATEGORY_HISTORY: Final[str] = "categoryHistory"
KEY_UNDO_STATE: Final[str] = "undoState"

# ── Paths ──
DEFAULT_DATA_DIR: Final[str] = "data/tabclf"
