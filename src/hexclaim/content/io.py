from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Protocol

from hexclaim.sim.hash import save_hash
from hexclaim.sim.rng import RngStreams
from hexclaim.sim.state import EconomyState

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")
DEFAULT_SAVE_DIR = "saves"
_STORAGE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class SnapshotStore(Protocol):
    """Scoped key-value blob store; ``load`` returns ``None`` when nothing was written."""

    def load(self, key: str) -> bytes | None:
        ...

    def save(self, key: str, data: bytes) -> None:
        ...


def validate_storage_key(key: str) -> str:
    if not isinstance(key, str) or not _STORAGE_KEY_PATTERN.match(key):
        raise ValueError(f"invalid storage key: {key!r}")
    return key


class MemoryStore:
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    def load(self, key: str) -> bytes | None:
        return self.blobs.get(validate_storage_key(key))

    def save(self, key: str, data: bytes) -> None:
        self.blobs[validate_storage_key(key)] = bytes(data)


class JsonDirectoryStore:
    """One ``<key>.json`` file per storage key, replaced atomically on save."""

    def __init__(self, root: str | Path = DEFAULT_SAVE_DIR) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{validate_storage_key(key)}.json"

    def load(self, key: str) -> bytes | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def save(self, key: str, data: bytes) -> None:
        write_atomic_bytes(self.path_for(key), data)


def canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def write_atomic_bytes(path: str | Path, data: bytes) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(data)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def build_save_payload(state: EconomyState, rng: RngStreams) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "mode_id": state.mode_id,
        "economy_state": state.to_dict(),
        "rng_state": rng.to_dict(),
    }
    # getstate() tuples must hash the same way they will read back
    payload = json.loads(json.dumps(payload))
    payload["save_hash"] = save_hash(payload)
    return payload


def encode_save_payload(state: EconomyState, rng: RngStreams) -> bytes:
    return canonical_json(build_save_payload(state, rng)).encode("utf-8")


def decode_save_payload(data: bytes | None, *, mode_id: str) -> tuple[Any, Any]:
    """Return ``(raw_economy_state, raw_rng_state)`` from a stored blob.

    Never raises; unusable parts come back as ``None`` and the reason is
    logged. A hash mismatch is reported but the content is still returned so
    the sanitizer can decide what survives.
    """
    if data is None:
        return None, None
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        logger.warning("discarding unreadable save for mode %s: %s", mode_id, exc)
        return None, None
    if not isinstance(payload, dict):
        logger.warning("discarding save for mode %s: payload is not an object", mode_id)
        return None, None

    schema_version = payload.get("schema_version")
    if schema_version != SCHEMA_VERSION:
        logger.warning("discarding save for mode %s: unsupported schema_version %r", mode_id, schema_version)
        return None, None
    if payload.get("mode_id") != mode_id:
        logger.warning("discarding save: stored mode %r does not match %s", payload.get("mode_id"), mode_id)
        return None, None

    expected_hash = payload.get("save_hash")
    try:
        actual_hash = save_hash(payload)
    except KeyError as exc:
        logger.warning("save for mode %s is missing field %s", mode_id, exc)
        actual_hash = None
    if actual_hash is not None and expected_hash != actual_hash:
        logger.warning(
            "save_hash mismatch for mode %s (stored=%s, recomputed=%s); repairing",
            mode_id,
            expected_hash,
            actual_hash,
        )
    return payload.get("economy_state"), payload.get("rng_state")
