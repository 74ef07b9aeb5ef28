"""Packaged JSON Schemas and the offline $ref registry."""

from __future__ import annotations

import pytest

from weft import schema
from weft.core import load_json


ALL_SCHEMAS = [
    schema.TOPOLOGY,
    schema.GATEWAY_ENTRY,
    schema.IDENTITY_ENTRY,
    schema.PROVISIONING_IDENTITY,
    schema.WALLET_CURRENT,
    schema.WALLET_COMPAT,
]


class TestRegistry:
    """Every schema loads and resolves its shared definitions."""

    @pytest.mark.parametrize("name", ALL_SCHEMAS)
    def test_schema_is_valid_draft_2020_12(self, name):
        from jsonschema import Draft202012Validator

        Draft202012Validator.check_schema(load_json(schema.SCHEMAS_DIR / name))

    @pytest.mark.parametrize("name", ALL_SCHEMAS)
    def test_ids_match_file_names(self, name):
        assert load_json(schema.SCHEMAS_DIR / name)["$id"].endswith("/" + name)

    def test_validator_cached(self):
        assert schema.schema_validator(schema.TOPOLOGY) is schema.schema_validator(schema.TOPOLOGY)

    def test_common_ref_resolves(self):
        errors = schema.validate_with_schema(
            {"type": "identity", "id": "", "wallet": "Org1", "private_key": "a", "cert": "a"},
            schema.IDENTITY_ENTRY,
        )
        assert len(errors) == 1
        assert errors[0].startswith("id:")


class TestMessages:
    """Error messages carry the failing location."""

    def test_root_location(self):
        errors = schema.validate_with_schema({"not": "a list"}, schema.TOPOLOGY)
        assert errors and errors[0].startswith("<root>:")

    def test_nested_location(self):
        doc = {
            "type": "gateway",
            "id": "gw",
            "client": {"organization": "Org1"},
            "organizations": {"Org1": {"mspid": "Org1MSP", "peers": "peer0:7051"}},
        }
        errors = schema.validate_with_schema(doc, schema.GATEWAY_ENTRY)
        assert errors == ["organizations/Org1/peers: 'peer0:7051' is not of type 'array'"]

    def test_valid(self):
        assert schema.validate_with_schema([{"type": "x"}], schema.TOPOLOGY) == []
