from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from celine.apns.models import (
    FailureReason,
    Notification,
    Priority,
    PushType,
    epoch_seconds,
    parse_reason,
)


def _notification(**kwargs) -> Notification:
    fields = {"device_token": "abc123", "payload": '{"aps":{"alert":"hi"}}'}
    fields.update(kwargs)
    return Notification(**fields)


def test_minimal_notification_sends_only_apns_id():
    n = _notification(id="abc")
    assert n.headers() == {"apns-id": "abc"}
    assert n.path == "/3/device/abc123"


def test_id_defaults_to_uuid():
    a = _notification()
    b = _notification()
    assert a.id and b.id
    assert a.id != b.id
    assert len(a.id) == 36


def test_no_expiration_header_when_unset():
    assert "apns-expiration" not in _notification().headers()


def test_expiration_is_whole_seconds_since_epoch():
    n = _notification(
        expiration=datetime(2017, 7, 14, 2, 40, 0, 999999, tzinfo=timezone.utc)
    )
    assert n.headers()["apns-expiration"] == "1500000000"


def test_expiration_converts_offset_to_utc():
    cet = timezone(timedelta(hours=2))
    n = _notification(expiration=datetime(2017, 7, 14, 4, 40, tzinfo=cet))
    assert n.headers()["apns-expiration"] == "1500000000"


def test_naive_expiration_is_utc():
    n = _notification(expiration=datetime(2017, 7, 14, 2, 40))
    assert n.headers()["apns-expiration"] == "1500000000"


def test_epoch_seconds_floors_before_epoch():
    instant = datetime(1969, 12, 31, 23, 59, 59, 500000, tzinfo=timezone.utc)
    assert epoch_seconds(instant) == -1


@pytest.mark.parametrize(
    "priority, expected",
    [(Priority.low, "5"), (Priority.high, "10"), ("low", "5"), ("high", "10")],
)
def test_priority_header(priority, expected):
    assert _notification(priority=priority).headers()["apns-priority"] == expected


def test_no_priority_header_when_unset():
    assert "apns-priority" not in _notification().headers()


def test_topic_header_omitted_when_empty():
    assert "apns-topic" not in _notification(topic="").headers()
    assert _notification(topic="com.example.app").headers()["apns-topic"] == (
        "com.example.app"
    )


def test_collapse_id_and_push_type_headers():
    headers = _notification(collapse_id="score", push_type=PushType.background).headers()
    assert headers["apns-collapse-id"] == "score"
    assert headers["apns-push-type"] == "background"


def test_dict_payload_is_serialized():
    n = _notification(payload={"aps": {"alert": "ciao è"}})
    assert n.payload == '{"aps":{"alert":"ciao è"}}'


def test_notification_is_immutable():
    n = _notification()
    with pytest.raises(ValidationError):
        n.topic = "other"


def test_device_token_required():
    with pytest.raises(ValidationError):
        Notification(device_token="", payload="{}")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("BadDeviceToken", FailureReason.BadDeviceToken),
        ("baddevicetoken", FailureReason.BadDeviceToken),
        ("TOOMANYREQUESTS", FailureReason.TooManyRequests),
        ("Unregistered", FailureReason.Unregistered),
        ("NotAReason", None),
        ("", None),
        (None, None),
        (400, None),
    ],
)
def test_parse_reason(raw, expected):
    assert parse_reason(raw) is expected
