"""
Self-signed TLS certificates for the QUIC transport.

Displays are provisioned without a certificate authority. Each node
generates a fresh key pair and a self-signed certificate at startup; QUIC
still encrypts every packet with TLS 1.3, but peers do not verify each
other's certificates.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Final

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

CERTIFICATE_COMMON_NAME: Final = "lrt-pids"
"""Subject and issuer common name of generated certificates."""

CERTIFICATE_VALIDITY: Final = timedelta(days=365)
"""How long a generated certificate stays valid."""


def generate_self_signed_certificate(
    common_name: str = CERTIFICATE_COMMON_NAME,
) -> tuple[bytes, bytes, x509.Certificate]:
    """
    Generate an ephemeral P-256 key and a self-signed certificate for it.

    Args:
        common_name: Subject and issuer common name.

    Returns:
        (private_key_pem, certificate_pem, certificate) tuple.
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_key = private_key.public_key()

    now = datetime.now(timezone.utc)
    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))  # Allow clock skew
        .not_valid_after(now + CERTIFICATE_VALIDITY)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)

    return private_pem, cert_pem, cert


def write_certificate_files(
    directory: Path,
    private_pem: bytes,
    cert_pem: bytes,
) -> tuple[Path, Path]:
    """
    Write a key and certificate where aioquic can load them.

    aioquic loads certificate chains from file paths only.

    Returns:
        (cert_path, key_path) tuple.
    """
    cert_path = directory / "cert.pem"
    key_path = directory / "key.pem"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(private_pem)
    key_path.chmod(0o600)
    return cert_path, key_path


def certificate_fingerprint(cert: x509.Certificate) -> str:
    """SHA-256 fingerprint of a certificate as colon-separated hex."""
    digest = hashlib.sha256(cert.public_bytes(serialization.Encoding.DER)).hexdigest()
    return ":".join(digest[i : i + 2] for i in range(0, len(digest), 2))
