from __future__ import annotations

import hashlib
import random
from typing import Any

RNG_LANDING_STREAM_NAME = "rng_landing"
RNG_YIELD_STREAM_NAME = "rng_yield"
RNG_REPAIR_STREAM_NAME = "rng_repair"


def derive_stream_seed(master_seed: int, stream_name: str) -> int:
    """Derive a deterministic child RNG seed from (master_seed, stream_name)."""
    digest = hashlib.sha256(f"{master_seed}:{stream_name}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def _json_list_to_tuple(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_json_list_to_tuple(item) for item in value)
    return value


class RngStreams:
    """Named ``random.Random`` streams derived from one master seed.

    Landing-cell draws and yield draws use separate streams so that a reset
    never shifts the sequence of exploration rewards and vice versa.
    """

    def __init__(self, master_seed: int) -> None:
        self.master_seed = int(master_seed)
        self._streams: dict[str, random.Random] = {}

    def stream(self, name: str) -> random.Random:
        if name not in self._streams:
            self._streams[name] = random.Random(derive_stream_seed(master_seed=self.master_seed, stream_name=name))
        return self._streams[name]

    def fresh(self, name: str) -> random.Random:
        """Uncached stream that always starts from its derived seed."""
        return random.Random(derive_stream_seed(master_seed=self.master_seed, stream_name=name))

    @property
    def landing(self) -> random.Random:
        return self.stream(RNG_LANDING_STREAM_NAME)

    @property
    def yields(self) -> random.Random:
        return self.stream(RNG_YIELD_STREAM_NAME)

    def to_dict(self) -> dict[str, Any]:
        return {
            "master_seed": self.master_seed,
            "stream_states": {name: self._streams[name].getstate() for name in sorted(self._streams)},
        }

    @classmethod
    def from_dict(cls, payload: Any, *, fallback_seed: int) -> "RngStreams":
        """Rebuild streams from a save payload; unusable entries are re-derived."""
        if not isinstance(payload, dict):
            return cls(fallback_seed)
        master_seed = payload.get("master_seed")
        if isinstance(master_seed, bool) or not isinstance(master_seed, int):
            return cls(fallback_seed)
        streams = cls(master_seed)
        stream_states = payload.get("stream_states")
        if not isinstance(stream_states, dict):
            return streams
        for name in sorted(stream_states):
            if not isinstance(name, str) or not name:
                continue
            stream = random.Random(derive_stream_seed(master_seed=master_seed, stream_name=name))
            try:
                stream.setstate(_json_list_to_tuple(stream_states[name]))
            except (TypeError, ValueError):
                continue
            streams._streams[name] = stream
        return streams
