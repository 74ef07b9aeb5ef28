"""JSON Schema validation infrastructure.

The schemas shipped in ``weft/schemas/`` describe every JSON shape the engine
reads: topology documents and their entries, wallet identity files (both
formats) and provisioning-service identities. They share ``$defs`` through
``common.schema.json``, so all of them are loaded into one registry keyed by
``$id`` and ``$ref`` resolves offline.
"""

from __future__ import annotations

import pathlib
from functools import lru_cache
from typing import Any, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from weft.core import load_json

SCHEMAS_DIR = pathlib.Path(__file__).resolve().parent / "schemas"

TOPOLOGY = "topology.schema.json"
GATEWAY_ENTRY = "gateway-entry.schema.json"
IDENTITY_ENTRY = "identity-entry.schema.json"
PROVISIONING_IDENTITY = "provisioning-identity.schema.json"
WALLET_CURRENT = "wallet-current.schema.json"
WALLET_COMPAT = "wallet-compat.schema.json"


@lru_cache(maxsize=1)
def _schema_registry() -> Registry:
    """Build an in-memory registry of the packaged schemas keyed by $id."""
    resources = []
    for sp in sorted(SCHEMAS_DIR.glob("*.schema.json")):
        sj = load_json(sp)
        sid = sj.get("$id")
        if not sid or not isinstance(sid, str):
            continue
        resources.append((sid, Resource.from_contents(sj, default_specification=DRAFT202012)))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(name: str) -> Draft202012Validator:
    """Return a cached validator for a packaged schema file name."""
    schema = load_json(SCHEMAS_DIR / name)
    return Draft202012Validator(schema, registry=_schema_registry())


def validate_with_schema(obj: Any, name: str) -> List[str]:
    """Validate ``obj``; return error messages (empty if valid)."""
    errors = []
    for e in sorted(schema_validator(name).iter_errors(obj), key=str):
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        errors.append(f"{where}: {e.message}")
    return errors
