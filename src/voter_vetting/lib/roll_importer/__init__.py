"""Roll importer library public API.

Provides roll file reading, row parsing and validation, and identity diffing.
"""

from voter_vetting.lib.roll_importer.differ import (
    COMPARE_FIELDS,
    RowUpdate,
    SeenIdentities,
    StoredIndex,
    detect_field_changes,
    identity_key,
    plan_update,
    same_birth,
)
from voter_vetting.lib.roll_importer.parser import is_ambiguous_dob, parse_birth_year, parse_dob, parse_row
from voter_vetting.lib.roll_importer.reader import (
    build_column_map,
    list_sheets,
    read_headers,
    read_roll_chunks,
)
from voter_vetting.lib.roll_importer.types import CANONICAL_COLUMNS, ImportConfig, ParsedRow
from voter_vetting.lib.roll_importer.validator import validate_batch, validate_row

__all__ = [
    "CANONICAL_COLUMNS",
    "COMPARE_FIELDS",
    "ImportConfig",
    "ParsedRow",
    "RowUpdate",
    "SeenIdentities",
    "StoredIndex",
    "build_column_map",
    "detect_field_changes",
    "identity_key",
    "is_ambiguous_dob",
    "list_sheets",
    "parse_birth_year",
    "parse_dob",
    "parse_row",
    "plan_update",
    "read_headers",
    "read_roll_chunks",
    "same_birth",
    "validate_batch",
    "validate_row",
]
