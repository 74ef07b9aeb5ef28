"""Credential codec: one identity's certificate and key in every on-disk shape.

The canonical in-memory form is :class:`Identity` (PEM bytes plus MSP id).
From there the codec converts to and from:

- wallet files, in two versioned schemas (:class:`WalletFormat`):
  ``current`` (marker field ``version``) and ``compat`` (the earlier SDK
  layout, marker field ``enrollment``); one decoder per version
- the MSP credential directory (``msp/signcerts/<id>.pem`` and
  ``msp/keystore/cert_sk``)
- provisioning-service JSON, where PEM blobs travel as base64 text

Certificates and keys are moved byte-for-byte. Nothing here verifies a
signature or a chain; ``certificate_summary`` only reads fields for display.
"""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cryptography import x509

from weft import schema
from weft.core import io_guard
from weft.errors import MalformedCredential, NotFound
from weft.sanitize import sanitize

KEYSTORE_FILENAME = "cert_sk"
CA_CERT_FILENAME = "ca.pem"
CONFIG_DESCRIPTOR_FILENAME = "config.yaml"


class WalletFormat(enum.Enum):
    """Wallet file schema version."""
    COMPAT = "compat"
    CURRENT = "current"

    @classmethod
    def from_flag(cls, compat: bool) -> "WalletFormat":
        return cls.COMPAT if compat else cls.CURRENT


@dataclass
class Identity:
    """One cryptographic principal.

    ``certificate`` is required; ``private_key`` only for identities that sign.
    """
    id: str
    msp_id: str
    certificate: bytes
    private_key: Optional[bytes] = None
    owner_label: str = ""

    @property
    def can_sign(self) -> bool:
        return bool(self.private_key)


@dataclass
class WalletEntry:
    """A named identity as persisted in an application wallet."""
    name: str
    msp_id: str
    certificate: bytes
    private_key: Optional[bytes] = None
    format: WalletFormat = WalletFormat.CURRENT


# ---------------------------------------------------------------------------
# Base64/PEM text
# ---------------------------------------------------------------------------


def decode_base64_pem(text: str) -> bytes:
    """Decode a base64-wrapped PEM blob.

    Raises MalformedCredential when the input is not base64, decodes to
    nothing, or is not UTF-8 text.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedCredential("credential is empty")
    try:
        raw = base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError) as ex:
        raise MalformedCredential(f"credential is not valid base64: {ex}") from ex
    if not raw.strip():
        raise MalformedCredential("credential decodes to empty content")
    _pem_text(raw)
    return raw


def encode_base64_pem(pem: bytes) -> str:
    return base64.b64encode(pem).decode("ascii")


def _pem_text(pem: bytes) -> str:
    try:
        return pem.decode("utf-8")
    except UnicodeDecodeError as ex:
        raise MalformedCredential("credential is not valid text") from ex


def _require(errors: List[str], what: str) -> None:
    if errors:
        raise MalformedCredential(f"{what}: " + "; ".join(errors))


# ---------------------------------------------------------------------------
# Wallet entries
# ---------------------------------------------------------------------------


def to_wallet_entry(
    identity: Identity,
    fmt: WalletFormat = WalletFormat.CURRENT,
    *,
    name: Optional[str] = None,
) -> WalletEntry:
    if not identity.certificate:
        raise MalformedCredential(f"identity '{identity.id}' has no certificate")
    return WalletEntry(
        name=name or identity.id,
        msp_id=identity.msp_id,
        certificate=identity.certificate,
        private_key=identity.private_key,
        format=fmt,
    )


def from_wallet_entry(entry: WalletEntry, owner_label: str = "") -> Identity:
    return Identity(
        id=entry.name,
        msp_id=entry.msp_id,
        certificate=entry.certificate,
        private_key=entry.private_key,
        owner_label=owner_label,
    )


def detect_wallet_format(doc: Any) -> WalletFormat:
    """Pick the decoder from the format marker field."""
    if isinstance(doc, dict):
        if "version" in doc:
            return WalletFormat.CURRENT
        if "enrollment" in doc:
            return WalletFormat.COMPAT
    raise MalformedCredential("wallet file has no format marker ('version' or 'enrollment')")


def encode_wallet_entry(entry: WalletEntry) -> Dict[str, Any]:
    """Serialize a WalletEntry to the JSON shape of its format."""
    cert = _pem_text(entry.certificate)
    key = _pem_text(entry.private_key) if entry.private_key else None

    if entry.format == WalletFormat.COMPAT:
        enrollment: Dict[str, Any] = {
            "signingIdentity": hashlib.sha256(entry.certificate).hexdigest(),
            "identity": {"certificate": cert},
        }
        if key is not None:
            enrollment["privateKey"] = key
        return {
            "name": entry.name,
            "mspid": entry.msp_id,
            "roles": None,
            "affiliation": "",
            "enrollmentSecret": "",
            "enrollment": enrollment,
        }

    credentials: Dict[str, Any] = {"certificate": cert}
    if key is not None:
        credentials["privateKey"] = key
    return {
        "credentials": credentials,
        "mspId": entry.msp_id,
        "type": "X.509",
        "version": 1,
    }


def _decode_current(doc: Dict[str, Any], name: str) -> WalletEntry:
    _require(schema.validate_with_schema(doc, schema.WALLET_CURRENT), f"wallet entry '{name}'")
    creds = doc["credentials"]
    key = creds.get("privateKey")
    return WalletEntry(
        name=name,
        msp_id=doc["mspId"],
        certificate=creds["certificate"].encode("utf-8"),
        private_key=key.encode("utf-8") if key else None,
        format=WalletFormat.CURRENT,
    )


def _decode_compat(doc: Dict[str, Any], name: str) -> WalletEntry:
    _require(schema.validate_with_schema(doc, schema.WALLET_COMPAT), f"wallet entry '{name}'")
    enrollment = doc["enrollment"]
    key = enrollment.get("privateKey")
    return WalletEntry(
        name=doc.get("name") or name,
        msp_id=doc["mspid"],
        certificate=enrollment["identity"]["certificate"].encode("utf-8"),
        private_key=key.encode("utf-8") if key else None,
        format=WalletFormat.COMPAT,
    )


_DECODERS = {
    WalletFormat.CURRENT: _decode_current,
    WalletFormat.COMPAT: _decode_compat,
}


def decode_wallet_entry(doc: Any, name: str) -> WalletEntry:
    """Parse a wallet file document; ``name`` is the wallet label it was stored under."""
    return _DECODERS[detect_wallet_format(doc)](doc, name)


# ---------------------------------------------------------------------------
# Provisioning-service JSON
# ---------------------------------------------------------------------------


def from_provisioning_json(
    doc: Any,
    msp_id: Optional[str] = None,
    owner_label: str = "",
) -> Identity:
    """Build an Identity from provisioning JSON (``cert``/``private_key`` base64).

    ``msp_id`` overrides any ``msp_id``/``mspid`` in the document. ``id`` is
    accepted as an alias of ``name``.
    """
    if not isinstance(doc, dict):
        raise MalformedCredential("identity JSON must be an object")
    _require(schema.validate_with_schema(doc, schema.PROVISIONING_IDENTITY), "identity JSON")

    key_text = doc.get("private_key")
    return Identity(
        id=doc.get("name") or doc["id"],
        msp_id=msp_id or doc.get("msp_id") or doc.get("mspid") or "",
        certificate=decode_base64_pem(doc["cert"]),
        private_key=decode_base64_pem(key_text) if key_text else None,
        owner_label=owner_label,
    )


def to_provisioning_json(identity: Identity, ca: Optional[bytes] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "name": identity.id,
        "type": "identity",
        "cert": encode_base64_pem(identity.certificate),
    }
    if identity.private_key:
        out["private_key"] = encode_base64_pem(identity.private_key)
    if ca:
        out["ca"] = encode_base64_pem(ca)
    if identity.msp_id:
        out["msp_id"] = identity.msp_id
    return out


# ---------------------------------------------------------------------------
# MSP credential directory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MspCredentialSet:
    """Paths of one identity's MSP directory.

    Layout::

        <root>/msp/cacerts/ca.pem
        <root>/msp/keystore/cert_sk
        <root>/msp/signcerts/<id>.pem
        <root>/msp/config.yaml
    """
    root: pathlib.Path
    identity_id: str = ""

    @property
    def msp_dir(self) -> pathlib.Path:
        return self.root / "msp"

    @property
    def cacerts_dir(self) -> pathlib.Path:
        return self.msp_dir / "cacerts"

    @property
    def keystore_dir(self) -> pathlib.Path:
        return self.msp_dir / "keystore"

    @property
    def signcerts_dir(self) -> pathlib.Path:
        return self.msp_dir / "signcerts"

    @property
    def ca_cert_path(self) -> pathlib.Path:
        return self.cacerts_dir / CA_CERT_FILENAME

    @property
    def keystore_path(self) -> pathlib.Path:
        return self.keystore_dir / KEYSTORE_FILENAME

    @property
    def config_path(self) -> pathlib.Path:
        return self.msp_dir / CONFIG_DESCRIPTOR_FILENAME

    @property
    def signcert_path(self) -> pathlib.Path:
        return self.signcerts_dir / f"{sanitize(self.identity_id)}.pem"

    def ensure(self) -> "MspCredentialSet":
        """Create root, msp and the three sub-directories; idempotent."""
        for d in (self.root, self.msp_dir, self.cacerts_dir, self.keystore_dir, self.signcerts_dir):
            with io_guard("create directory", d):
                d.mkdir(parents=True, exist_ok=True)
        return self


def to_msp_credential_set(identity: Identity, root: pathlib.Path) -> MspCredentialSet:
    """Write ``identity`` into the MSP layout under ``root``."""
    if not identity.certificate:
        raise MalformedCredential(f"identity '{identity.id}' has no certificate")
    creds = MspCredentialSet(pathlib.Path(root), identity.id).ensure()

    with io_guard("write", creds.signcert_path):
        creds.signcert_path.write_bytes(identity.certificate)
    with io_guard("write", creds.keystore_path):
        if identity.private_key:
            creds.keystore_path.write_bytes(identity.private_key)
        elif creds.keystore_path.exists():
            creds.keystore_path.unlink()
    return creds


def _single(paths: List[pathlib.Path], what: str, where: pathlib.Path) -> Optional[pathlib.Path]:
    if len(paths) > 1:
        names = ", ".join(p.name for p in paths)
        raise MalformedCredential(f"{where} holds more than one {what}: {names}")
    return paths[0] if paths else None


def from_msp_directory(root: pathlib.Path, msp_id: str = "") -> Identity:
    """Read the identity stored under ``root`` (the directory holding ``msp/``).

    The keystore key is ``cert_sk`` when present; otherwise a single
    ``*_sk`` file (the CA client naming) is accepted. The MSP directory does
    not record an MSP id, so the caller supplies it.
    """
    creds = MspCredentialSet(pathlib.Path(root))
    if not creds.msp_dir.is_dir():
        raise NotFound(f"no MSP directory at {creds.msp_dir}", path=str(creds.msp_dir))

    with io_guard("read", creds.msp_dir):
        signcerts = sorted(creds.signcerts_dir.glob("*.pem")) if creds.signcerts_dir.is_dir() else []
        cert_path = _single(signcerts, "signing certificate", creds.signcerts_dir)
        if cert_path is None:
            raise MalformedCredential(f"no signing certificate in {creds.signcerts_dir}")
        certificate = cert_path.read_bytes()

        key_path: Optional[pathlib.Path] = None
        if creds.keystore_path.is_file():
            key_path = creds.keystore_path
        elif creds.keystore_dir.is_dir():
            key_path = _single(sorted(creds.keystore_dir.glob("*_sk")), "private key", creds.keystore_dir)
        private_key = key_path.read_bytes() if key_path else None

    if not certificate.strip():
        raise MalformedCredential(f"signing certificate {cert_path} is empty")
    return Identity(
        id=cert_path.stem,
        msp_id=msp_id,
        certificate=certificate,
        private_key=private_key,
    )


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def certificate_summary(pem: bytes) -> Dict[str, str]:
    """Read subject/issuer/serial/validity from a PEM certificate for display."""
    try:
        cert = x509.load_pem_x509_certificate(pem)
    except ValueError as ex:
        raise MalformedCredential(f"certificate cannot be parsed: {ex}") from ex
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "serial_number": format(cert.serial_number, "x"),
        "not_valid_before": cert.not_valid_before_utc.isoformat(),
        "not_valid_after": cert.not_valid_after_utc.isoformat(),
    }
