"""Tests for the direct-code matching backend."""

from assist_signaling.services.matching import DirectCodeMatchingEngine
from tests.conftest import assert_invariants, build_engine, register_all, summarize


def test_call_without_code_is_not_queued() -> None:
    engine = build_engine(DirectCodeMatchingEngine)
    register_all(engine, users=["u1"], professionals=["p1"])

    deliveries = engine.initiate_call("u1")

    assert summarize(deliveries) == [("u1", "no-professional-available")]
    assert deliveries[0].envelope.payload == {
        "queued": False,
        "kind": "no-match",
        "message": "No professional is hosting that code",
    }
    assert len(engine.queue) == 0


def test_code_pairs_with_hosting_professional() -> None:
    engine = build_engine(DirectCodeMatchingEngine)
    register_all(engine, users=["u1", "u2"], professionals=["p1", "p2"])
    code = engine.registry.require("p2").display_code

    deliveries = engine.initiate_call("u1", code)
    busy = engine.initiate_call("u2", code)
    unknown = engine.initiate_call("u2", "ZZZZZZ")

    assert summarize(deliveries) == [
        ("p2", "call-request"),
        ("u1", "professional-available"),
    ]
    assert busy[0].envelope.payload["queued"] is False
    assert unknown[0].envelope.payload["kind"] == "no-match"
    assert len(engine.queue) == 0
    assert_invariants(engine)


def test_reject_does_not_retry() -> None:
    engine = build_engine(DirectCodeMatchingEngine)
    register_all(engine, users=["u1"], professionals=["p1", "p2"])
    engine.initiate_call("u1", engine.registry.require("p1").display_code)

    deliveries = engine.reject_call("p1", "u1", "declined")

    assert summarize(deliveries) == [("u1", "call-rejected")]
    assert engine.availability.is_available("p1")
    assert engine.sessions.find_for("u1") is None
