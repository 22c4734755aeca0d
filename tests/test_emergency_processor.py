"""
Tests for emergency request processing: fan-out, event record and terminal marking.
"""
from datetime import datetime, timedelta

import pytest

from secureheart_alerts.core.errors import (
    DeliveryFailed,
    DeliveryTimeout,
    EmergencyEventExists,
    StoreWriteFailed,
)


def test_end_to_end_with_shared_location(repository, processor, push_client, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", "Carol", push_token="tok-c1", share_location_with_me=True)
    request_id = make_request(
        "u1", emergency_event_id="evt-1", share_location=True, latitude=40.0, longitude=-73.0
    )

    results = processor.process(request_id)

    assert results == {"c1": "sent"}
    [message] = push_client.sent
    assert "165" in message.body
    assert "40.000000, -73.000000" in message.body

    event = repository.get_emergency_event("evt-1")
    assert event.contacts_notified == ["c1"]
    assert event.notification_status == {"c1": "sent"}
    assert event.location == {"latitude": 40.0, "longitude": -73.0}
    assert event.resolved is False
    assert event.resolved_at is None

    request = repository.get_emergency_request(request_id)
    assert request.processed is True
    assert request.processed_at is not None
    assert request.results == {"c1": "sent"}
    assert request.error is None


def test_one_bad_token_does_not_block_others(repository, processor, push_client, make_user, add_contact, make_request):
    make_user("u1")
    for i in range(4):
        add_contact("u1", f"c{i}", push_token=f"tok-{i}")
    push_client.failures["tok-1"] = DeliveryFailed("invalid registration token", status_code=400)
    request_id = make_request("u1")

    processor.process(request_id)

    event = repository.get_emergency_event("evt-u1")
    assert sorted(event.contacts_notified) == ["c0", "c1", "c2", "c3"]
    assert [cid for cid, status in event.notification_status.items() if status == "failed"] == ["c1"]
    assert len(push_client.sent) == 3
    assert repository.get_emergency_request(request_id).processed is True


def test_contacts_without_token_are_attempted_and_failed(repository, processor, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", push_token="")
    request_id = make_request("u1")

    processor.process(request_id)

    event = repository.get_emergency_event("evt-u1")
    assert event.contacts_notified == ["c1"]
    assert event.notification_status == {"c1": "failed"}


def test_no_contacts_still_records_event(repository, processor, push_client, make_user, make_request):
    make_user("u1")
    request_id = make_request("u1")

    assert processor.process(request_id) == {}

    event = repository.get_emergency_event("evt-u1")
    assert event.contacts_notified == []
    assert event.notification_status == {}
    assert push_client.sent == []
    assert repository.get_emergency_request(request_id).processed is True


def test_unknown_user_marks_request_failed(repository, processor, push_client, make_request):
    request_id = make_request("ghost")

    assert processor.process(request_id) is None

    request = repository.get_emergency_request(request_id)
    assert request.processed is False
    assert request.processed_at is not None
    assert "ghost" in request.error
    assert repository.get_emergency_event("evt-ghost") is None
    assert push_client.calls == {}


def test_event_write_failure_marks_request_failed(
    repository, processor, push_client, make_user, add_contact, make_request, monkeypatch
):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1")
    request_id = make_request("u1")

    def broken_save(**kwargs):
        raise StoreWriteFailed("disk full")

    monkeypatch.setattr(repository, "save_emergency_event", broken_save)

    processor.process(request_id)

    request = repository.get_emergency_request(request_id)
    assert request.processed is False
    assert request.error == "disk full"


def test_location_not_stored_when_not_shared(repository, processor, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1", share_location_with_me=True)
    request_id = make_request("u1", share_location=False, latitude=40.0, longitude=-73.0)

    processor.process(request_id)

    assert repository.get_emergency_event("evt-u1").location is None


def test_request_is_processed_once(repository, processor, push_client, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1")
    request_id = make_request("u1")

    processor.process(request_id)
    assert processor.process(request_id) is None
    assert len(push_client.sent) == 1


def test_missing_request_is_ignored(processor):
    assert processor.process("does-not-exist") is None


@pytest.mark.parametrize("severity", ["critical", "high", "moderate"])
def test_every_severity_is_dispatched(repository, processor, push_client, make_user, add_contact, make_request, severity):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1")
    request_id = make_request("u1", severity=severity)

    assert processor.process(request_id) == {"c1": "sent"}
    assert repository.get_emergency_event("evt-u1").severity == severity


def test_failure_kinds_are_recorded_per_contact(repository, processor, push_client, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c-ok", push_token="tok-ok")
    add_contact("u1", "c-slow", push_token="tok-slow")
    add_contact("u1", "c-bad", push_token="tok-bad")
    add_contact("u1", "c-none", push_token="")
    push_client.failures["tok-slow"] = DeliveryTimeout("read timed out")
    push_client.failures["tok-bad"] = DeliveryFailed("invalid registration token", status_code=400)
    request_id = make_request("u1")

    results = processor.process(request_id)

    assert results == {"c-ok": "sent", "c-slow": "failed", "c-bad": "failed", "c-none": "failed"}
    request = repository.get_emergency_request(request_id)
    assert request.errors == {"c-slow": "Timeout", "c-bad": "DeliveryFailed", "c-none": "MissingPushToken"}
    assert repository.get_emergency_event("evt-u1").notification_status["c-slow"] == "failed"


def test_all_sent_records_no_failure_kinds(repository, processor, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1")
    request_id = make_request("u1")

    processor.process(request_id)

    assert repository.get_emergency_request(request_id).errors == {}


def test_duplicate_event_id_is_rejected_at_write(repository, make_user, make_request):
    make_user("u1")
    make_request("u1", emergency_event_id="evt-1")

    with pytest.raises(EmergencyEventExists):
        make_request("u9", emergency_event_id="evt-1")


def test_request_for_existing_event_is_rejected(repository, processor, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1")
    processor.process(make_request("u1", emergency_event_id="evt-1"))
    repository.resolve_emergency_event("evt-1")

    # Sweep the original request; the event it produced remains.
    assert repository.delete_processed_requests(before=datetime.utcnow() + timedelta(days=1)) == 1
    assert repository.get_emergency_event("evt-1") is not None

    with pytest.raises(EmergencyEventExists):
        make_request("u9", emergency_event_id="evt-1")

    event = repository.get_emergency_event("evt-1")
    assert event.user_id == "u1"
    assert event.resolved is True


def test_event_is_never_overwritten(repository, processor, push_client, make_user, add_contact, make_request):
    make_user("u1")
    add_contact("u1", "c1", push_token="tok-c1")
    request_id = make_request("u1", emergency_event_id="evt-1")
    repository.save_emergency_event(
        event_id="evt-1", user_id="u7", user_first_name="Eve", heart_rate=90, severity="moderate",
        timestamp=1600000000.0, location=None, contacts_notified=[], notification_status={},
    )

    assert processor.process(request_id) is None

    request = repository.get_emergency_request(request_id)
    assert request.processed is False
    assert request.error
    event = repository.get_emergency_event("evt-1")
    assert event.user_id == "u7"
    assert event.heart_rate == 90


def test_duplicate_event_write_raises(repository):
    fields = dict(
        event_id="evt-1", user_id="u1", user_first_name="Alice", heart_rate=160, severity="high",
        timestamp=1700000000.0, location=None, contacts_notified=[], notification_status={},
    )
    repository.save_emergency_event(**fields)

    with pytest.raises(StoreWriteFailed):
        repository.save_emergency_event(**dict(fields, user_id="u2"))

    assert repository.get_emergency_event("evt-1").user_id == "u1"
