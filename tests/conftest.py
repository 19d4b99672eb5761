from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from celine.apns.certificates import ClientCertificate


def _self_signed(common_name: str):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return cert, key


@pytest.fixture
def make_cert():
    """Factory for throwaway self-signed certificates."""

    def _make(common_name: str) -> x509.Certificate:
        return _self_signed(common_name)[0]

    return _make


@pytest.fixture
def client_certificate() -> ClientCertificate:
    cert, key = _self_signed("Apple Push Services: com.example.app")
    return ClientCertificate(certificate=cert, private_key=key)


@pytest.fixture
def pem_bytes():
    def _pem(*certs: x509.Certificate, key=None, password: bytes | None = None):
        data = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in certs)
        if key is not None:
            encryption = (
                serialization.BestAvailableEncryption(password)
                if password
                else serialization.NoEncryption()
            )
            data += key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=encryption,
            )
        return data

    return _pem


def _issued(common_name: str, issuer: x509.Certificate, issuer_key, ca: bool):
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(issuer.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )
    return cert, key


@pytest.fixture
def issued_chain():
    """Root, intermediate and a client certificate issued by the intermediate."""
    root, root_key = _self_signed("Apple Root CA")
    intermediate, intermediate_key = _issued(
        "Apple Worldwide Developer Relations", root, root_key, ca=True
    )
    leaf, leaf_key = _issued(
        "Apple Push Services: com.example.app", intermediate, intermediate_key, ca=False
    )
    return root, intermediate, ClientCertificate(certificate=leaf, private_key=leaf_key)
