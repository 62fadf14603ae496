from __future__ import annotations

import copy
import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from hexclaim.content.io import canonical_json, write_atomic_bytes
from hexclaim.sim.state import utc_timestamp

logger = logging.getLogger(__name__)

CELL_METADATA_SCHEMA_VERSION = 1
DEFAULT_CELL_METADATA_PATH = "saves/cell_metadata.json"


def _validate_json_value(value: Any, *, field_name: str) -> None:
    if value is None or isinstance(value, (bool, int, str)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{field_name} must not contain NaN or infinity")
        return
    if isinstance(value, list):
        for item in value:
            _validate_json_value(item, field_name=field_name)
        return
    if isinstance(value, dict):
        for key, nested_value in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{field_name} keys must be strings")
            _validate_json_value(nested_value, field_name=f"{field_name}.{key}")
        return
    raise ValueError(f"{field_name} must contain only canonical JSON primitives")


@dataclass
class CellRecord:
    cell_id: str
    props: dict[str, Any] = field(default_factory=dict)
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"cell_id": self.cell_id, "props": self.props, "updated_at": self.updated_at}


class CellMetadataStore:
    """Free-form JSON properties per cell, independent of ownership.

    Writes replace the whole property object for a cell (last write wins).
    """

    def __init__(self, path: str | Path = DEFAULT_CELL_METADATA_PATH, *, clock: Callable[[], str] | None = None) -> None:
        self.path = Path(path)
        self.clock = clock if clock is not None else utc_timestamp
        self._records: dict[str, CellRecord] = self._read()

    def _read(self) -> dict[str, CellRecord]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (ValueError, RecursionError) as exc:
            logger.warning("ignoring unreadable cell metadata file %s: %s", self.path, exc)
            return {}
        rows = payload.get("cells") if isinstance(payload, dict) else None
        if not isinstance(rows, dict):
            logger.warning("ignoring malformed cell metadata file %s", self.path)
            return {}
        records: dict[str, CellRecord] = {}
        for cell_id, row in rows.items():
            if not isinstance(row, dict) or not isinstance(row.get("props"), dict):
                continue
            updated_at = row.get("updated_at")
            records[cell_id] = CellRecord(
                cell_id=cell_id,
                props=row["props"],
                updated_at=updated_at if isinstance(updated_at, str) else "",
            )
        return records

    def get(self, cell_id: str) -> CellRecord | None:
        record = self._records.get(cell_id)
        return copy.deepcopy(record) if record is not None else None

    def upsert(self, cell_id: str, props: dict[str, Any]) -> CellRecord:
        if not isinstance(cell_id, str) or not cell_id:
            raise ValueError("cell_id must be a non-empty string")
        if not isinstance(props, dict):
            raise ValueError("props must be an object")
        _validate_json_value(props, field_name="props")

        record = CellRecord(cell_id=cell_id, props=copy.deepcopy(props), updated_at=self.clock())
        records = {**self._records, cell_id: record}
        payload = {
            "schema_version": CELL_METADATA_SCHEMA_VERSION,
            "cells": {key: {"props": records[key].props, "updated_at": records[key].updated_at} for key in sorted(records)},
        }
        write_atomic_bytes(self.path, canonical_json(payload).encode("utf-8"))
        self._records = records
        return copy.deepcopy(record)

    def cell_ids(self) -> list[str]:
        return sorted(self._records)
