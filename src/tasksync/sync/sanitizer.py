"""Record normalization applied before local rows reach the remote store."""

from typing import Any, Dict, Mapping

# Columns with this prefix are local bookkeeping and never leave the replica
INTERNAL_FIELD_PREFIX = "_"


def sanitize_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``record`` fit for upload.

    Empty strings become ``None`` and internal bookkeeping fields are
    dropped. Other values, including ``0`` and ``False``, pass through.
    """
    return {
        key: None if isinstance(value, str) and value == "" else value
        for key, value in record.items()
        if not key.startswith(INTERNAL_FIELD_PREFIX)
    }
