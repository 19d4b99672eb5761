from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import httpx
from cryptography import x509

from celine.apns.certificates import (
    CertificateBundle,
    CertificateStore,
    ClientCertificate,
)
from celine.apns.interpreter import interpret_response
from celine.apns.models import Notification
from celine.apns.outcomes import Outcome

logger = logging.getLogger(__name__)

MAX_CONNECTION_ID = 2**31 - 1


class ApnsEnvironment(str, Enum):
    production = "production"
    sandbox = "sandbox"

    @property
    def host(self) -> str:
        if self == ApnsEnvironment.sandbox:
            return "api.sandbox.push.apple.com"
        return "api.push.apple.com"


DEFAULT_PORT = 443


@dataclass(frozen=True)
class ApnsConfiguration:
    host: str
    port: int = DEFAULT_PORT
    certificate: ClientCertificate | None = None
    additional_certificates: tuple[x509.Certificate, ...] = ()
    include_system_stores: bool = False

    @classmethod
    def for_environment(
        cls,
        environment: ApnsEnvironment,
        certificate: ClientCertificate | None = None,
        additional_certificates: Sequence[x509.Certificate] = (),
        include_system_stores: bool = False,
        port: int = DEFAULT_PORT,
    ) -> ApnsConfiguration:
        return cls(
            host=environment.host,
            port=port,
            certificate=certificate,
            additional_certificates=tuple(additional_certificates),
            include_system_stores=include_system_stores,
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}"


class ConnectionIdCounter:
    """Process-wide diagnostic ids for connections.

    Created at import time and never reset. Ids increase by one and wrap to 0
    once ``maximum`` has been handed out.
    """

    def __init__(self, maximum: int = MAX_CONNECTION_ID, start: int = 0):
        self.maximum = maximum
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._value + 1
            if value > self.maximum:
                value = 0
            self._value = value
            return value


connection_ids = ConnectionIdCounter()


class ApnsConnection:
    """One long-lived HTTP/2 client bound to a gateway endpoint.

    ``send`` may be awaited concurrently; requests are multiplexed over the
    shared client.
    """

    def __init__(
        self,
        configuration: ApnsConfiguration,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        counter: ConnectionIdCounter | None = None,
        stores: Sequence[CertificateStore] | None = None,
    ):
        if configuration is None:
            raise TypeError("configuration is required")

        self.configuration = configuration
        self.id = (counter or connection_ids).next()

        self.certificates = CertificateBundle.assemble(
            primary=configuration.certificate,
            additional=configuration.additional_certificates,
            include_system_stores=configuration.include_system_stores,
            stores=stores,
        )

        self._client = httpx.AsyncClient(
            http2=True,
            verify=self.certificates.ssl_context(configuration.certificate),
            base_url=configuration.base_url,
            transport=transport,
        )

        logger.info(
            "APNs connection %d bound to %s (%d certificates)",
            self.id,
            configuration.base_url,
            len(self.certificates),
        )

    async def send(self, notification: Notification) -> Outcome:
        headers = notification.headers()
        headers["content-type"] = "application/json"

        logger.debug(
            "Connection %d: POST %s apns-id=%s",
            self.id,
            notification.path,
            notification.id,
        )

        response = await self._client.post(
            notification.path,
            headers=headers,
            content=notification.payload.encode("utf-8"),
        )

        return interpret_response(
            notification,
            response.status_code,
            response.headers,
            response.content,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ApnsConnection:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
