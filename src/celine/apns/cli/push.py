from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx
import typer
from pydantic import ValidationError

from celine.apns.config.settings import Settings, settings
from celine.apns.connection import ApnsConnection
from celine.apns.models import Notification, Priority, PushType
from celine.apns.outcomes import (
    ExpiredSubscription,
    Outcome,
    ProtocolFailure,
    ProtocolIntegrityError,
    Success,
    UnrecognizedGatewayResponse,
)

push_app = typer.Typer(add_completion=False, help="Send push notifications")


def _load_settings(env_file: Optional[Path]) -> Settings:
    if env_file is not None:
        return Settings(_env_file=env_file)
    return settings


def _connect(cfg: Settings) -> ApnsConnection:
    return ApnsConnection(
        cfg.to_configuration(), stores=cfg.certificate_stores()
    )


async def _send(connection: ApnsConnection, notification: Notification) -> Outcome:
    async with connection:
        return await connection.send(notification)


def _describe(outcome: Outcome) -> str:
    if isinstance(outcome, Success):
        return f"Delivered (apns-id={outcome.apns_id})"
    if isinstance(outcome, ExpiredSubscription):
        return (
            f"Device token {outcome.device_token} expired at "
            f"{outcome.expired_at.isoformat()}"
        )
    if isinstance(outcome, ProtocolFailure):
        return f"Rejected ({outcome.status_code}): {outcome.reason.value}"
    if isinstance(outcome, ProtocolIntegrityError):
        return (
            f"Mismatched apns-id: sent {outcome.expected_id}, "
            f"received {outcome.received_id}"
        )
    if isinstance(outcome, UnrecognizedGatewayResponse):
        return (
            f"Unrecognized gateway response ({outcome.status_code}): "
            f"{outcome.detail}"
        )
    return repr(outcome)


@push_app.command("send")
def send(
    device_token: str = typer.Argument(..., help="Target device token (hex)."),
    payload: str = typer.Option(
        ...,
        "--payload",
        "-p",
        help='JSON payload, e.g. \'{"aps": {"alert": "Hello"}}\'.',
    ),
    topic: Optional[str] = typer.Option(
        None, "--topic", "-t", help="App bundle id. Defaults to APNS_TOPIC."
    ),
    priority: Optional[Priority] = typer.Option(None, "--priority"),
    expiration: Optional[datetime] = typer.Option(
        None, "--expiration", help="Expiry instant in UTC, e.g. 2026-01-31T12:00:00."
    ),
    apns_id: Optional[str] = typer.Option(None, "--id", help="Correlation id."),
    collapse_id: Optional[str] = typer.Option(None, "--collapse-id"),
    push_type: Optional[PushType] = typer.Option(None, "--push-type"),
    env_file: Optional[Path] = typer.Option(
        None, "--env-file", "-e", help="Read settings from this .env file."
    ),
) -> None:
    """Send a single notification and print the gateway outcome."""
    cfg = _load_settings(env_file)
    logging.basicConfig(level=cfg.LOG_LEVEL, format="%(levelname)s: %(message)s")

    try:
        json.loads(payload)
    except ValueError as exc:
        typer.echo(f"Error: --payload is not valid JSON ({exc})", err=True)
        raise typer.Exit(2)

    fields = dict(
        device_token=device_token,
        payload=payload,
        expiration=expiration,
        priority=priority,
        topic=topic or cfg.APNS_TOPIC,
        collapse_id=collapse_id,
        push_type=push_type,
    )
    if apns_id:
        fields["id"] = apns_id

    try:
        notification = Notification(**fields)
    except ValidationError as exc:
        typer.echo(f"Invalid notification:\n{exc}", err=True)
        raise typer.Exit(2)

    try:
        connection = _connect(cfg)
    except (OSError, ValueError) as exc:
        typer.echo(f"Error: could not load certificates ({exc})", err=True)
        raise typer.Exit(1)

    try:
        outcome = asyncio.run(_send(connection, notification))
    except httpx.HTTPError as exc:
        typer.echo(f"Connection error: {exc}", err=True)
        raise typer.Exit(1)

    typer.echo(_describe(outcome))
    if not isinstance(outcome, Success):
        raise typer.Exit(1)
