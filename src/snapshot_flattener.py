"""
Flattening of billing snapshot records into schema rows.

A field that is missing or null in the source record is absent and is never
written to the output row, so consumers can tell "unset" apart from "empty".
"""

from typing import Any

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

SNAPSHOT_SCALAR_FIELDS = [
    "account_id",
    "month",
    "account_type",
    "state",
    "snapshot_id",
    "charset",
    "compression",
    "content_type",
    "bucket",
    "version",
    "created_on",
]
SNAPSHOT_INT_FIELDS = ["expected_processed_at", "processed_at"]

BILLING_PERIOD_FIELDS = ["start", "end"]
REPORT_TYPE_FIELDS = ["type", "version"]
FILE_FIELDS = ["report_types", "location", "account_id"]

# Output column order of the flattened snapshot row.
SNAPSHOT_COLUMNS = [
    "account_id",
    "month",
    "account_type",
    "expected_processed_at",
    "state",
    "billing_period",
    "snapshot_id",
    "charset",
    "compression",
    "content_type",
    "bucket",
    "version",
    "created_on",
    "report_types",
    "files",
    "processed_at",
]


class SnapshotConversionError(ValueError):
    """Raised when a snapshot field cannot be converted to its schema type."""


def int_value(value: Any, field: str = "value") -> int:
    """
    Losslessly narrow a numeric timestamp to a signed 64-bit integer.

    Raises:
        SnapshotConversionError: value is not integral or does not fit.
    """
    if isinstance(value, bool):
        raise SnapshotConversionError(f"{field}: expected integer, got boolean {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise SnapshotConversionError(f"{field}: {value!r} is not an integer")
        value = int(value)
    if not isinstance(value, int):
        raise SnapshotConversionError(
            f"{field}: expected integer, got {type(value).__name__} {value!r}"
        )
    if not INT64_MIN <= value <= INT64_MAX:
        raise SnapshotConversionError(f"{field}: {value} is out of 64-bit integer range")
    return value


def _copy_present(source: dict, fields: list[str]) -> dict[str, Any]:
    return {name: source[name] for name in fields if source.get(name) is not None}


def flatten_billing_period(model: dict) -> dict[str, Any]:
    return _copy_present(model, BILLING_PERIOD_FIELDS)


def flatten_report_type(model: dict) -> dict[str, Any]:
    return _copy_present(model, REPORT_TYPE_FIELDS)


def flatten_file(model: dict) -> dict[str, Any]:
    return _copy_present(model, FILE_FIELDS)


def flatten_snapshot(model: dict) -> dict[str, Any]:
    """
    Flatten one snapshot record.

    Args:
        model: Snapshot item as returned in the ``snapshots`` array of a page

    Returns:
        Mapping keyed by the names in SNAPSHOT_COLUMNS, holding only the
        fields present in the record. ``billing_period`` is wrapped in a
        one-element list, ``report_types`` and ``files`` keep their length
        and order.
    """
    row = _copy_present(model, SNAPSHOT_SCALAR_FIELDS)

    for name in SNAPSHOT_INT_FIELDS:
        if model.get(name) is not None:
            row[name] = int_value(model[name], name)

    if model.get("billing_period") is not None:
        row["billing_period"] = [flatten_billing_period(model["billing_period"])]
    if model.get("report_types") is not None:
        row["report_types"] = [flatten_report_type(item) for item in model["report_types"]]
    if model.get("files") is not None:
        row["files"] = [flatten_file(item) for item in model["files"]]

    return {name: row[name] for name in SNAPSHOT_COLUMNS if name in row}
