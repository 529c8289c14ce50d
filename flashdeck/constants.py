"""
Leitner scheduling and storage constants.

Pure constants only; runtime configuration lives in flashdeck.config.
"""
from typing import Tuple

# Review intervals in days, indexed by box. Must be strictly ascending.
DEFAULT_INTERVALS: Tuple[int, ...] = (1, 3, 7, 14, 30)

MAX_BOX_INDEX: int = len(DEFAULT_INTERVALS) - 1

ONE_DAY_MS: int = 24 * 60 * 60 * 1000

# Key under which the whole application document is stored.
DEFAULT_STORAGE_KEY: str = "flashcard_app_final"
