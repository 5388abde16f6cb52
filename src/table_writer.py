import csv
import json
import logging

from keboola.component.base import ComponentBase

from snapshot_flattener import FILE_FIELDS, REPORT_TYPE_FIELDS, SNAPSHOT_COLUMNS
from snapshot_lister import SnapshotListResult

SNAPSHOTS_TABLE = "snapshots.csv"
REPORT_TYPES_TABLE = "snapshot_report_types.csv"
FILES_TABLE = "snapshot_files.csv"

NESTED_COLUMNS = {"billing_period", "report_types", "files"}
PARENT_KEY = "snapshot_id"
CHILD_KEY = [PARENT_KEY, "index"]


class SnapshotTableWriter:
    """Writes flattened snapshots as output tables with manifests."""

    def __init__(self, component: ComponentBase, incremental: bool = False):
        self.component = component
        self.incremental = incremental

    def write(self, result: SnapshotListResult):
        """Write the snapshot table and its report type and file child tables."""
        missing_ids = sum(1 for row in result.snapshots if PARENT_KEY not in row)
        if missing_ids:
            logging.warning(
                f"{missing_ids} snapshots have no {PARENT_KEY}, they share an empty primary key in {SNAPSHOTS_TABLE}"
            )

        snapshot_rows = [self._serialize_snapshot(row) for row in result.snapshots]
        report_type_rows = self._child_rows(result.snapshots, "report_types", REPORT_TYPE_FIELDS)
        file_rows = self._child_rows(result.snapshots, "files", FILE_FIELDS)

        self._write_table(SNAPSHOTS_TABLE, SNAPSHOT_COLUMNS, snapshot_rows, [PARENT_KEY])
        self._write_table(
            REPORT_TYPES_TABLE, [PARENT_KEY, "index", *REPORT_TYPE_FIELDS], report_type_rows, CHILD_KEY
        )
        self._write_table(FILES_TABLE, [PARENT_KEY, "index", *FILE_FIELDS], file_rows, CHILD_KEY)

    @staticmethod
    def _serialize_snapshot(row: dict) -> dict:
        return {
            name: json.dumps(value) if name in NESTED_COLUMNS else value
            for name, value in row.items()
        }

    @staticmethod
    def _child_rows(snapshots: list[dict], column: str, fields: list[str]) -> list[dict]:
        rows = []
        for snapshot in snapshots:
            for index, item in enumerate(snapshot.get(column, [])):
                child = {PARENT_KEY: snapshot.get(PARENT_KEY), "index": index}
                child.update({name: item[name] for name in fields if name in item})
                rows.append(child)
        return rows

    def _write_table(self, name: str, columns: list[str], rows: list[dict], pkey: list[str] = None):
        table_def = self.component.create_out_table_definition(
            name=name,
            incremental=self.incremental,
            primary_key=pkey or [],
            schema=columns,
            has_header=True,
        )
        with open(table_def.full_path, "w", encoding="utf-8", newline="") as out_file:
            writer = csv.DictWriter(out_file, fieldnames=columns, restval="")
            writer.writeheader()
            writer.writerows(rows)

        self.component.write_manifest(table_def)
        logging.info(f"Written {len(rows)} rows to {name}")
