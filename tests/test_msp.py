"""MSP directory builder."""

from __future__ import annotations

import pytest
import yaml

from weft import msp
from weft.codec import Identity
from weft.errors import MalformedCredential

from helpers import b64


def _tree(root):
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


class TestLayout:
    """Directory shape peer and orderer processes read."""

    def test_ensure_layout_creates_four_dirs(self, tmp_path):
        creds = msp.ensure_layout(tmp_path / "peer0")
        for d in (creds.msp_dir, creds.cacerts_dir, creds.keystore_dir, creds.signcerts_dir):
            assert d.is_dir()

    def test_ensure_layout_idempotent_and_non_destructive(self, tmp_path):
        creds = msp.ensure_layout(tmp_path)
        creds.ca_cert_path.write_bytes(b"ca")
        before = _tree(tmp_path)
        msp.ensure_layout(tmp_path)
        assert _tree(tmp_path) == before
        assert creds.ca_cert_path.read_bytes() == b"ca"


class TestWrites:
    """Identity, CA certificate and config descriptor writes."""

    def test_write_and_read_identity(self, tmp_path, cert_pem, key_pem):
        ident = Identity(id="peer0", msp_id="Org1MSP", certificate=cert_pem, private_key=key_pem)
        creds = msp.write_identity(tmp_path, ident)
        assert creds.signcert_path.read_bytes() == cert_pem
        assert creds.keystore_path.read_bytes() == key_pem
        back = msp.read_identity(tmp_path, "Org1MSP")
        assert (back.id, back.msp_id) == ("peer0", "Org1MSP")

    def test_write_ca_and_config(self, tmp_path, ca_pem):
        p = msp.write_ca_certificate(tmp_path, ca_pem)
        assert p == tmp_path / "msp" / "cacerts" / "ca.pem"
        assert p.read_bytes() == ca_pem
        c = msp.write_config_descriptor(tmp_path, b"NodeOUs:\n  Enable: true\n")
        assert c == tmp_path / "msp" / "config.yaml"

    def test_rewrite_overwrites(self, tmp_path, ca_pem):
        msp.write_ca_certificate(tmp_path, b"old")
        assert msp.write_ca_certificate(tmp_path, ca_pem).read_bytes() == ca_pem


class TestNodeOUs:
    """NodeOUs config descriptor."""

    def test_descriptor_keys(self):
        doc = yaml.safe_load(msp.node_ous_descriptor())
        ous = doc["NodeOUs"]
        assert ous["Enable"] is True
        for role in ("Client", "Peer", "Admin", "Orderer"):
            entry = ous[f"{role}OUIdentifier"]
            assert entry["Certificate"] == "cacerts/ca.pem"
            assert entry["OrganizationalUnitIdentifier"] == role.lower()

    def test_custom_ca_file(self):
        doc = yaml.safe_load(msp.node_ous_descriptor("root.pem"))
        assert doc["NodeOUs"]["PeerOUIdentifier"]["Certificate"] == "cacerts/root.pem"


class TestProvisionedIdentity:
    """Provisioning JSON straight into an MSP directory."""

    def test_with_ca_and_node_ous(self, tmp_path, cert_pem, key_pem, ca_pem):
        doc = {"name": "app1", "cert": b64(cert_pem), "private_key": b64(key_pem), "ca": b64(ca_pem)}
        creds = msp.write_provisioned_identity(tmp_path, doc, "Org1MSP", node_ous=True)
        assert creds.signcert_path == tmp_path / "msp" / "signcerts" / "app1.pem"
        assert creds.signcert_path.read_bytes() == cert_pem
        assert creds.keystore_path.read_bytes() == key_pem
        assert creds.ca_cert_path.read_bytes() == ca_pem
        assert yaml.safe_load(creds.config_path.read_bytes())["NodeOUs"]["Enable"] is True

    def test_without_extras(self, tmp_path, cert_pem):
        creds = msp.write_provisioned_identity(tmp_path, {"name": "app1", "cert": b64(cert_pem)}, "Org1MSP")
        assert not creds.ca_cert_path.exists()
        assert not creds.config_path.exists()
        assert not creds.keystore_path.exists()

    def test_bad_cert(self, tmp_path):
        with pytest.raises(MalformedCredential):
            msp.write_provisioned_identity(tmp_path, {"name": "app1", "cert": "!!"}, "Org1MSP")
