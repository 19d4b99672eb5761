from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Mapping

from celine.apns.models import EPOCH, Notification, parse_reason, utc_now
from celine.apns.outcomes import (
    ExpiredSubscription,
    Outcome,
    ProtocolFailure,
    ProtocolIntegrityError,
    Success,
    UnrecognizedGatewayResponse,
)

STATUS_OK = 200
STATUS_GONE = 410


def _decode(body: bytes | str | None) -> str | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return body or None


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, bool):
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    try:
        return EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return None


def _expired(notification: Notification, text: str | None, now: datetime | None):
    expired_at = None
    if text is not None:
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("timestamp") is not None:
            expired_at = _parse_timestamp(data["timestamp"])

    return ExpiredSubscription(
        notification=notification,
        device_token=notification.device_token,
        expired_at=expired_at or now or utc_now(),
    )


def _failure(notification: Notification, status_code: int, text: str | None):
    def unrecognized(detail: str) -> UnrecognizedGatewayResponse:
        return UnrecognizedGatewayResponse(
            notification=notification,
            status_code=status_code,
            body=text,
            detail=detail,
        )

    if text is None:
        return unrecognized("missing response body")

    try:
        data = json.loads(text)
    except ValueError:
        return unrecognized("response body is not valid JSON")

    if not isinstance(data, dict):
        return unrecognized("response body is not a JSON object")

    raw_reason = data.get("reason")
    reason = parse_reason(raw_reason)
    if reason is None:
        return unrecognized(f"unknown reason {raw_reason!r}")

    return ProtocolFailure(
        notification=notification, reason=reason, status_code=status_code
    )


def interpret_response(
    notification: Notification,
    status_code: int,
    headers: Mapping[str, str],
    body: bytes | str | None,
    now: datetime | None = None,
) -> Outcome:
    """Classify a gateway response to ``notification`` into a send outcome.

    ``headers`` must support lookups by lowercase name (httpx.Headers is
    case-insensitive). ``now`` is used as the expiry instant when a 410 body
    carries no usable timestamp.
    """
    text = _decode(body)

    if status_code == STATUS_OK:
        received_id = headers.get("apns-id")
        if received_id != notification.id:
            return ProtocolIntegrityError(
                notification=notification,
                expected_id=notification.id,
                received_id=received_id,
            )
        return Success(notification=notification, apns_id=received_id)

    if status_code == STATUS_GONE:
        return _expired(notification, text, now)

    return _failure(notification, status_code, text)
