from __future__ import annotations

import json

from hexclaim.sim.rng import RNG_LANDING_STREAM_NAME, RNG_YIELD_STREAM_NAME, RngStreams, derive_stream_seed


def test_derived_stream_seed_is_stable_for_same_master_seed() -> None:
    assert derive_stream_seed(master_seed=12345, stream_name="rng_yield") == derive_stream_seed(
        master_seed=12345, stream_name="rng_yield"
    )


def test_derived_stream_seed_changes_with_stream_name() -> None:
    assert derive_stream_seed(master_seed=12345, stream_name=RNG_YIELD_STREAM_NAME) != derive_stream_seed(
        master_seed=12345, stream_name=RNG_LANDING_STREAM_NAME
    )


def test_landing_draws_do_not_perturb_yield_stream() -> None:
    streams_a = RngStreams(987)
    streams_b = RngStreams(987)

    for _ in range(100):
        streams_b.landing.random()

    assert [streams_a.yields.random() for _ in range(3)] == [streams_b.yields.random() for _ in range(3)]


def test_fresh_stream_always_restarts() -> None:
    streams = RngStreams(3)

    assert streams.fresh("rng_repair").random() == streams.fresh("rng_repair").random()


def test_stream_state_round_trips_through_json() -> None:
    streams = RngStreams(222)
    streams.yields.random()
    streams.landing.random()

    payload = json.loads(json.dumps(streams.to_dict()))
    restored = RngStreams.from_dict(payload, fallback_seed=0)

    assert restored.master_seed == 222
    assert [restored.yields.random() for _ in range(3)] == [streams.yields.random() for _ in range(3)]
    assert restored.landing.random() == streams.landing.random()


def test_unusable_payload_falls_back_to_seed() -> None:
    assert RngStreams.from_dict("garbage", fallback_seed=9).master_seed == 9
    assert RngStreams.from_dict({"master_seed": True}, fallback_seed=9).master_seed == 9

    restored = RngStreams.from_dict({"master_seed": 4, "stream_states": {"rng_yield": [1, 2]}}, fallback_seed=9)
    assert restored.master_seed == 4
    assert restored.yields.random() == RngStreams(4).yields.random()
