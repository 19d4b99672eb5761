from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from celine.apns.models import FailureReason, Notification


@dataclass(frozen=True)
class Success:
    notification: Notification
    apns_id: str


@dataclass(frozen=True)
class ExpiredSubscription:
    """The gateway reports the device token as permanently gone (410)."""

    notification: Notification
    device_token: str
    expired_at: datetime


@dataclass(frozen=True)
class ProtocolFailure:
    notification: Notification
    reason: FailureReason
    status_code: int


@dataclass(frozen=True)
class ProtocolIntegrityError:
    """A 200 response whose apns-id does not echo the request id."""

    notification: Notification
    expected_id: str
    received_id: str | None


@dataclass(frozen=True)
class UnrecognizedGatewayResponse:
    """A non-200 response that cannot be classified into a FailureReason."""

    notification: Notification
    status_code: int
    body: str | None
    detail: str


Outcome = Union[
    Success,
    ExpiredSubscription,
    ProtocolFailure,
    ProtocolIntegrityError,
    UnrecognizedGatewayResponse,
]
