"""Shared test doubles and credential factories."""

from __future__ import annotations

import base64
import datetime
from typing import List, Optional, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from weft.shell import CommandResult


def make_credentials(common_name: str = "admin") -> tuple[bytes, bytes]:
    """Generate a self-signed P-256 certificate and its PKCS#8 key, both PEM."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "org1.example.com"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class FakeRunner:
    """CommandRunner double: records commands, fails those matching ``failing``."""

    def __init__(self, stdout: bytes = b"fetched\n", failing: Sequence[str] = ()):
        self.stdout = stdout
        self.failing = tuple(failing)
        self.batches: List[List[str]] = []

    @property
    def commands(self) -> List[str]:
        return [c for batch in self.batches for c in batch]

    def run(self, commands):
        self.batches.append(list(commands))
        out = []
        for c in commands:
            if any(f in c for f in self.failing):
                out.append(CommandResult(c, 1, stderr="no such container"))
            else:
                out.append(CommandResult(c, 0, stdout=self.stdout))
        return out


class Recorder:
    """Reporter double: keeps every ``{msg, error?, val?}`` message."""

    def __init__(self):
        self.messages: List[dict] = []

    def __call__(self, msg: str, *, error: bool = False, val: Optional[object] = None) -> None:
        self.messages.append({"msg": msg, "error": error, "val": val})

    @property
    def errors(self) -> List[dict]:
        return [m for m in self.messages if m["error"]]

    def texts(self) -> List[str]:
        return [m["msg"] for m in self.messages]
