"""Exception view of send outcomes.

``ApnsConnection.send`` returns an outcome value. Callers that would rather
handle failures as exceptions can pass the outcome to ``raise_for_outcome``.
"""

from __future__ import annotations

from celine.apns.outcomes import (
    ExpiredSubscription,
    Outcome,
    ProtocolFailure,
    ProtocolIntegrityError,
    Success,
    UnrecognizedGatewayResponse,
)


class ApnsError(Exception):
    def __init__(self, message: str, outcome: Outcome):
        super().__init__(message)
        self.outcome = outcome


class SubscriptionExpiredError(ApnsError):
    pass


class NotificationRejectedError(ApnsError):
    pass


class IntegrityViolationError(ApnsError):
    pass


class UnrecognizedResponseError(ApnsError):
    pass


def raise_for_outcome(outcome: Outcome) -> Success:
    if isinstance(outcome, Success):
        return outcome

    if isinstance(outcome, ExpiredSubscription):
        raise SubscriptionExpiredError(
            f"Device subscription expired at {outcome.expired_at.isoformat()}",
            outcome,
        )
    if isinstance(outcome, ProtocolFailure):
        raise NotificationRejectedError(
            f"Notification rejected: {outcome.reason.value} "
            f"(status={outcome.status_code})",
            outcome,
        )
    if isinstance(outcome, ProtocolIntegrityError):
        raise IntegrityViolationError(
            f"Mismatched apns-id: expected {outcome.expected_id!r}, "
            f"got {outcome.received_id!r}",
            outcome,
        )
    if isinstance(outcome, UnrecognizedGatewayResponse):
        raise UnrecognizedResponseError(
            f"Unrecognized gateway response (status={outcome.status_code}): "
            f"{outcome.detail}",
            outcome,
        )

    raise TypeError(f"Not a send outcome: {outcome!r}")
