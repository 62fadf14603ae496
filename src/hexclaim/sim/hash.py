from __future__ import annotations

import hashlib
import json
from typing import Any

from hexclaim.sim.state import EconomyState


def _digest(payload: Any) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def state_hash(state: EconomyState) -> str:
    return _digest(state.to_dict())


def save_hash(payload: dict[str, Any]) -> str:
    hash_payload = {
        "schema_version": payload["schema_version"],
        "mode_id": payload["mode_id"],
        "economy_state": payload["economy_state"],
        "rng_state": payload["rng_state"],
    }
    return _digest(hash_payload)
