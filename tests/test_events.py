"""Tests for trustledger.events — event bus and ledger notifications."""

from unittest.mock import MagicMock, patch

from trustledger.events import Event, EventBus, EventType, Subscription

OWNER = "owner"


class TestEvent:
    def test_defaults(self):
        e = Event(event_type="score.updated", data={"new_score": 57})
        assert e.timestamp > 0
        assert len(e.event_id) == 16

    def test_event_id_deterministic(self):
        e1 = Event(event_type="test", data={"x": 1}, timestamp=1700000000.0)
        e2 = Event(event_type="test", data={"x": 1}, timestamp=1700000000.0)
        assert e1.event_id == e2.event_id

    def test_to_dict_roundtrip(self):
        e = Event(event_type="dispute.raised", data={"dispute_id": 0}, height=4, source="alice")
        assert Event.from_dict(e.to_dict()) == e


class TestSubscription:
    def test_glob_match(self):
        sub = Subscription(subscriber_id="s", patterns=["verifier.*"])
        assert sub.matches("verifier.registered")
        assert not sub.matches("score.updated")


class TestEventBus:
    def test_subscribe_and_emit(self):
        bus = EventBus()
        received = []
        bus.subscribe("score.*", received.append)
        bus.emit(EventType.SCORE_UPDATED, {"new_score": 57})
        bus.emit(EventType.DISPUTE_RAISED, {})
        assert [e.event_type for e in received] == ["score.updated"]

    def test_generated_ids(self):
        bus = EventBus()
        assert bus.subscribe("*", lambda e: None) == "sub:1"
        assert bus.add_webhook("http://example.invalid/hook", "*") == "wh:2"
        assert bus.subscriber_count == 2

    def test_unsubscribe(self):
        bus = EventBus()
        sid = bus.subscribe("*", lambda e: None)
        assert bus.unsubscribe(sid)
        assert not bus.unsubscribe(sid)
        assert bus.subscriber_count == 0

    def test_failing_subscriber_isolated(self):
        bus = EventBus()
        good = MagicMock()
        bus.subscribe("*", MagicMock(side_effect=RuntimeError("boom")))
        bus.subscribe("*", good)
        bus.emit("score.updated")
        good.assert_called_once()

    def test_history_bounded(self):
        bus = EventBus(max_history=3)
        for i in range(5):
            bus.emit("submission.recorded", {"sequence": i})
        history = bus.history()
        assert [e.data["sequence"] for e in history] == [2, 3, 4]
        assert bus.history("score.*") == []

    def test_webhook_post(self):
        bus = EventBus()
        bus.add_webhook("http://example.invalid/hook", ["dispute.*"])
        with patch("trustledger.events.urllib.request.urlopen") as urlopen:
            bus.emit(EventType.DISPUTE_RAISED, {"dispute_id": 0})
        req = urlopen.call_args[0][0]
        assert req.full_url == "http://example.invalid/hook"
        assert req.get_method() == "POST"

    def test_webhook_failure_logged(self):
        bus = EventBus()
        bus.add_webhook("http://example.invalid/hook", "*")
        with patch("trustledger.events.urllib.request.urlopen", side_effect=OSError("down")):
            event = bus.emit("score.updated")
        assert event.event_type == "score.updated"


class TestLedgerEvents:
    def test_mutations_publish(self, ledger):
        ledger.register_verifier(OWNER, "v1", 80, 5000).unwrap()
        ledger.initialize_account("alice").unwrap()
        sid = ledger.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        ledger.recompute_reputation("alice", [sid]).unwrap()
        ledger.raise_dispute("alice", "too low").unwrap()
        ledger.deactivate_verifier(OWNER, "v1").unwrap()
        assert [e.event_type for e in ledger.events.history()] == [
            "verifier.registered",
            "account.initialized",
            "submission.recorded",
            "score.updated",
            "dispute.raised",
            "verifier.deactivated",
        ]
        score_event = ledger.events.history("score.updated")[0]
        assert score_event.data["new_score"] == 57
        assert score_event.data["status"] == "fair"

    def test_failures_do_not_publish(self, ledger):
        ledger.register_verifier("mallory", "v1", 80, 5000)
        ledger.initialize_account("alice").unwrap()
        ledger.initialize_account("alice").unwrap()
        ledger.submit_score("ghost", "alice", 90, 70, "kyc")
        assert [e.event_type for e in ledger.events.history()] == ["account.initialized"]

    def test_subscriber_error_keeps_write(self, seeded):
        seeded.events.subscribe("submission.*", MagicMock(side_effect=RuntimeError("boom")))
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        assert seeded.get_submission(sid) is not None
