"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MIN_APPEAL_REASON_LENGTH = 10
MAX_APPEAL_REASON_LENGTH = 500
MAX_SUPPORTING_DOCUMENTS = 3
DEFAULT_LIST_LIMIT = 200
OVERRIDE_COMMENT_PREFIX = "[Admin override]"
