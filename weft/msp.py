"""MSP credential directory builder.

Materializes the folder layout peer and orderer processes read for their
local identity::

    <root>/msp/cacerts/ca.pem
    <root>/msp/keystore/cert_sk
    <root>/msp/signcerts/<id>.pem
    <root>/msp/config.yaml

``ensure_layout`` is idempotent and never removes content. The CA certificate
and the config descriptor usually come from a running network component, so
they have their own write operations that the topology processor calls once
an external fetch returned their bytes.
"""

from __future__ import annotations

import logging
import pathlib
from typing import Any, Dict, Optional

import yaml

from weft import codec
from weft.codec import Identity, MspCredentialSet
from weft.core import io_guard

logger = logging.getLogger(__name__)

NODE_OU_ROLES = ("client", "peer", "admin", "orderer")


def ensure_layout(root: pathlib.Path) -> MspCredentialSet:
    """Create ``root/msp`` and its ``cacerts``/``keystore``/``signcerts`` dirs."""
    return MspCredentialSet(pathlib.Path(root)).ensure()


def write_identity(root: pathlib.Path, identity: Identity) -> MspCredentialSet:
    ensure_layout(root)
    creds = codec.to_msp_credential_set(identity, pathlib.Path(root))
    logger.debug("wrote MSP identity %s under %s", identity.id, creds.msp_dir)
    return creds


def read_identity(root: pathlib.Path, msp_id: str = "") -> Identity:
    return codec.from_msp_directory(pathlib.Path(root), msp_id)


def write_ca_certificate(root: pathlib.Path, pem: bytes) -> pathlib.Path:
    creds = ensure_layout(root)
    with io_guard("write", creds.ca_cert_path):
        creds.ca_cert_path.write_bytes(pem)
    return creds.ca_cert_path


def write_config_descriptor(root: pathlib.Path, data: bytes) -> pathlib.Path:
    creds = ensure_layout(root)
    with io_guard("write", creds.config_path):
        creds.config_path.write_bytes(data)
    return creds.config_path


def node_ous_descriptor(ca_file: str = codec.CA_CERT_FILENAME) -> bytes:
    """Render a NodeOUs ``config.yaml`` keyed on ``cacerts/<ca_file>``."""
    doc: Dict[str, Any] = {"NodeOUs": {"Enable": True}}
    for role in NODE_OU_ROLES:
        doc["NodeOUs"][f"{role.capitalize()}OUIdentifier"] = {
            "Certificate": f"cacerts/{ca_file}",
            "OrganizationalUnitIdentifier": role,
        }
    return yaml.safe_dump(doc, default_flow_style=False, sort_keys=False).encode("utf-8")


def write_provisioned_identity(
    root: pathlib.Path,
    doc: Any,
    msp_id: Optional[str] = None,
    *,
    node_ous: bool = False,
) -> MspCredentialSet:
    """Materialize a provisioning-service identity JSON as an MSP directory.

    A ``ca`` field, when present, becomes ``cacerts/ca.pem``. With
    ``node_ous`` a NodeOUs config descriptor is written as well.
    """
    identity = codec.from_provisioning_json(doc, msp_id)
    creds = write_identity(root, identity)
    ca_text = doc.get("ca") if isinstance(doc, dict) else None
    if ca_text:
        write_ca_certificate(root, codec.decode_base64_pem(ca_text))
    if node_ous:
        write_config_descriptor(root, node_ous_descriptor())
    return creds
