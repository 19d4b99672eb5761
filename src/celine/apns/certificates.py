"""Client certificates and the bundle presented during the TLS handshake."""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

logger = logging.getLogger(__name__)

USER_STORE_PATH = Path("~/.config/celine/apns/certs.pem")
_STORE_SUFFIXES = {".pem", ".crt", ".cer"}


def _is_store_file(path: Path) -> bool:
    # OpenSSL capath directories hold hash links such as a1b2c3d4.0
    suffix = path.suffix.lower()
    return suffix in _STORE_SUFFIXES or suffix[1:].isdigit()


def _password(password: str | bytes | None) -> bytes | None:
    if isinstance(password, str):
        return password.encode("utf-8")
    return password


@dataclass(frozen=True)
class ClientCertificate:
    """A certificate together with the private key used to authenticate."""

    certificate: x509.Certificate
    private_key: PrivateKeyTypes
    chain: tuple[x509.Certificate, ...] = ()

    @classmethod
    def from_pem(
        cls, data: bytes, password: str | bytes | None = None
    ) -> ClientCertificate:
        certificates = x509.load_pem_x509_certificates(data)
        key = serialization.load_pem_private_key(data, password=_password(password))
        return cls(
            certificate=certificates[0],
            private_key=key,
            chain=tuple(certificates[1:]),
        )

    @classmethod
    def from_pem_file(
        cls, path: str | Path, password: str | bytes | None = None
    ) -> ClientCertificate:
        return cls.from_pem(Path(path).expanduser().read_bytes(), password)

    @classmethod
    def from_pkcs12(
        cls, data: bytes, password: str | bytes | None = None
    ) -> ClientCertificate:
        key, certificate, extra = pkcs12.load_key_and_certificates(
            data, _password(password)
        )
        if certificate is None or key is None:
            raise ValueError("PKCS#12 archive has no certificate/private key pair")
        return cls(certificate=certificate, private_key=key, chain=tuple(extra))

    @classmethod
    def from_pkcs12_file(
        cls, path: str | Path, password: str | bytes | None = None
    ) -> ClientCertificate:
        return cls.from_pkcs12(Path(path).expanduser().read_bytes(), password)

    @classmethod
    def from_file(
        cls, path: str | Path, password: str | bytes | None = None
    ) -> ClientCertificate:
        if Path(path).suffix.lower() in (".p12", ".pfx"):
            return cls.from_pkcs12_file(path, password)
        return cls.from_pem_file(path, password)

    def key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


def load_certificates(path: str | Path) -> list[x509.Certificate]:
    """Load every PEM certificate from a file, or from the files of a directory.

    A path that does not exist, and files without certificates, yield nothing.
    """
    p = Path(path).expanduser()
    if p.is_dir():
        files = sorted(f for f in p.iterdir() if f.is_file() and _is_store_file(f))
    elif p.is_file():
        files = [p]
    else:
        return []

    certificates: list[x509.Certificate] = []
    for f in files:
        try:
            certificates.extend(x509.load_pem_x509_certificates(f.read_bytes()))
        except ValueError:
            logger.debug("No certificates in %s", f)
    return certificates


class StoreLocation(str, Enum):
    local_machine = "local_machine"
    current_user = "current_user"


def _default_store_path(location: StoreLocation) -> str | None:
    if location == StoreLocation.local_machine:
        paths = ssl.get_default_verify_paths()
        return paths.cafile or paths.openssl_cafile or paths.capath
    return str(USER_STORE_PATH)


class CertificateStore:
    """An OS-level certificate store backed by a PEM file or directory."""

    def __init__(self, location: StoreLocation, path: str | Path | None = None):
        self.location = location
        self.path = path if path is not None else _default_store_path(location)

    def certificates(self) -> list[x509.Certificate]:
        if not self.path:
            return []
        return load_certificates(self.path)


def default_stores(
    machine_path: str | Path | None = None, user_path: str | Path | None = None
) -> tuple[CertificateStore, CertificateStore]:
    return (
        CertificateStore(StoreLocation.local_machine, machine_path),
        CertificateStore(StoreLocation.current_user, user_path),
    )


class CertificateBundle:
    """Ordered certificates presented for client authentication.

    Assembly order is fixed: local-machine store, current-user store,
    additional certificates, then the primary certificate last.
    """

    def __init__(self, certificates: Iterable[x509.Certificate] = ()):
        self._certificates = tuple(certificates)

    @classmethod
    def assemble(
        cls,
        primary: ClientCertificate | None = None,
        additional: Sequence[x509.Certificate] | None = None,
        include_system_stores: bool = False,
        stores: Sequence[CertificateStore] | None = None,
    ) -> CertificateBundle:
        certificates: list[x509.Certificate] = []

        if include_system_stores:
            for store in stores if stores is not None else default_stores():
                found = store.certificates()
                logger.debug(
                    "Loaded %d certificates from %s store",
                    len(found),
                    store.location.value,
                )
                certificates.extend(found)

        if additional:
            certificates.extend(additional)

        if primary is not None:
            certificates.append(primary.certificate)

        return cls(certificates)

    @property
    def certificates(self) -> tuple[x509.Certificate, ...]:
        return self._certificates

    def __iter__(self):
        return iter(self._certificates)

    def __len__(self) -> int:
        return len(self._certificates)

    def presented_chain(self, client: ClientCertificate) -> list[x509.Certificate]:
        """Certificates sent in the handshake for ``client``.

        The client certificate comes first, followed by its own chain and then
        any intermediates from the bundle that continue its issuer chain.
        Self-signed roots are never sent.
        """
        leaf = client.certificate
        chain = [leaf]
        for cert in client.chain:
            if cert not in chain:
                chain.append(cert)

        candidates = [*client.chain, *self._certificates]
        current = leaf
        while current.issuer != current.subject:
            issuer = next(
                (c for c in candidates if c.subject == current.issuer and c != current),
                None,
            )
            if issuer is None or issuer.issuer == issuer.subject:
                break
            if issuer not in chain:
                chain.append(issuer)
            elif chain.index(issuer) < chain.index(current):
                # issuer loop
                break
            current = issuer

        return chain

    def chain_pem(self, client: ClientCertificate) -> bytes:
        return b"".join(
            c.public_bytes(serialization.Encoding.PEM)
            for c in self.presented_chain(client)
        )

    def ssl_context(self, client: ClientCertificate | None = None) -> ssl.SSLContext:
        """Build an SSL context that presents ``client`` and its issuer chain."""
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        if client is None:
            return context

        # load_cert_chain only reads from files
        fd, path = tempfile.mkstemp(suffix=".pem")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(self.chain_pem(client))
                f.write(client.key_pem())
            context.load_cert_chain(path)
        finally:
            os.unlink(path)
        return context
