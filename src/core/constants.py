"""Core constants used across librarian modules.

This module centralizes reserved keys, attribute names, and limits.
Keeping values here avoids magic literals in the versioning logic.
"""

from __future__ import annotations

# Reserved primary key values of the snapshot metadata record. Number keys use
# the negated value, which no encoded key can reach.
METADATA_PARTITION_KEY_VALUE = "10998317287113653723324905557015239445"
METADATA_SORT_KEY_VALUE = "23924679894624777035069814726213883132"

SNAPSHOTS_ATTRIBUTE = "snapshots"
ORDERED_IDS_ATTRIBUTE = "ids_list"
LATEST_ID_ATTRIBUTE = "latest_snapshot"
CURRENT_ID_ATTRIBUTE = "current_snapshot"

SNAPSHOT_LATEST = "latest"
SNAPSHOT_CURRENT = "current"
PRE_SNAPSHOT_ID = ""
RESERVED_SNAPSHOT_NAMES = (PRE_SNAPSHOT_ID, SNAPSHOT_LATEST, SNAPSHOT_CURRENT)

SNAPSHOT_ID_WIDTH = 2
MAX_SNAPSHOT_ID = 10**SNAPSHOT_ID_WIDTH - 1
STRING_KEY_DELIMITER = "#"
NUMBER_MAX_DIGITS = 38
NUMBER_KEY_DIGITS = NUMBER_MAX_DIGITS - SNAPSHOT_ID_WIDTH

STRING_KEY_TYPE = "S"
NUMBER_KEY_TYPE = "N"
SUPPORTED_KEY_TYPES = (STRING_KEY_TYPE, NUMBER_KEY_TYPE)

BATCH_GET_MAX_KEYS = 100
BATCH_WRITE_MAX_REQUESTS = 25

DEFAULT_PARTITION_KEY_TYPE = STRING_KEY_TYPE
DEFAULT_LOG_LEVEL = "INFO"
SUPPORTED_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
