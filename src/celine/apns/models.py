from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PRIORITY_LOW = "5"
PRIORITY_HIGH = "10"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_apns_id() -> str:
    return str(uuid4())


class Priority(str, Enum):
    low = "low"
    high = "high"


class PushType(str, Enum):
    alert = "alert"
    background = "background"
    location = "location"
    voip = "voip"
    complication = "complication"
    fileprovider = "fileprovider"
    mdm = "mdm"
    liveactivity = "liveactivity"


class FailureReason(str, Enum):
    """Reason codes the gateway returns in the ``reason`` field of an error body."""

    BadCollapseId = "BadCollapseId"
    BadDeviceToken = "BadDeviceToken"
    BadExpirationDate = "BadExpirationDate"
    BadMessageId = "BadMessageId"
    BadPriority = "BadPriority"
    BadTopic = "BadTopic"
    DeviceTokenNotForTopic = "DeviceTokenNotForTopic"
    DuplicateHeaders = "DuplicateHeaders"
    IdleTimeout = "IdleTimeout"
    InvalidPushType = "InvalidPushType"
    MissingDeviceToken = "MissingDeviceToken"
    MissingTopic = "MissingTopic"
    PayloadEmpty = "PayloadEmpty"
    TopicDisallowed = "TopicDisallowed"
    BadCertificate = "BadCertificate"
    BadCertificateEnvironment = "BadCertificateEnvironment"
    ExpiredProviderToken = "ExpiredProviderToken"
    Forbidden = "Forbidden"
    InvalidProviderToken = "InvalidProviderToken"
    MissingProviderToken = "MissingProviderToken"
    UnrelatedKeyIdInToken = "UnrelatedKeyIdInToken"
    BadPath = "BadPath"
    MethodNotAllowed = "MethodNotAllowed"
    ExpiredToken = "ExpiredToken"
    Unregistered = "Unregistered"
    PayloadTooLarge = "PayloadTooLarge"
    TooManyProviderTokenUpdates = "TooManyProviderTokenUpdates"
    TooManyRequests = "TooManyRequests"
    InternalServerError = "InternalServerError"
    ServiceUnavailable = "ServiceUnavailable"
    Shutdown = "Shutdown"


_REASONS: Dict[str, FailureReason] = {r.value.lower(): r for r in FailureReason}


def parse_reason(value: Any) -> FailureReason | None:
    """Map a gateway reason string to a FailureReason, ignoring case.

    Returns None for anything that is not a known reason name.
    """
    if not isinstance(value, str):
        return None
    return _REASONS.get(value.strip().lower())


def epoch_seconds(instant: datetime) -> int:
    # naive datetimes are UTC
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return (instant - EPOCH) // timedelta(seconds=1)


class Notification(BaseModel):
    """A single push request addressed to one device token."""

    model_config = ConfigDict(frozen=True)

    device_token: str = Field(min_length=1)
    payload: str
    id: str = Field(default_factory=new_apns_id, min_length=1)
    expiration: Optional[datetime] = None
    priority: Optional[Priority] = None
    topic: Optional[str] = None
    collapse_id: Optional[str] = None
    push_type: Optional[PushType] = None

    @field_validator("payload", mode="before")
    @classmethod
    def _serialize_payload(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        return value

    @property
    def path(self) -> str:
        return f"/3/device/{self.device_token}"

    def headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"apns-id": self.id}

        if self.expiration is not None:
            headers["apns-expiration"] = str(epoch_seconds(self.expiration))

        if self.priority is not None:
            headers["apns-priority"] = (
                PRIORITY_LOW if self.priority == Priority.low else PRIORITY_HIGH
            )

        if self.topic:
            headers["apns-topic"] = self.topic

        if self.collapse_id:
            headers["apns-collapse-id"] = self.collapse_id

        if self.push_type is not None:
            headers["apns-push-type"] = self.push_type.value

        return headers
