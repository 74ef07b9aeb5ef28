"""weft: identity material between wallets, MSP directories and JSON.

Architecture:
    weft/
    ├── __init__.py      # Package entry, version, public API
    ├── errors.py        # Error kinds
    ├── sanitize.py      # Untrusted names -> safe path segments
    ├── core.py          # JSON/YAML, stdin input, directory helpers
    ├── schema.py        # JSON Schema validation infrastructure
    ├── codec.py         # Identity <-> wallet file / MSP dir / provisioning JSON
    ├── wallet.py        # Application wallet store
    ├── msp.py           # MSP credential directory builder
    ├── shell.py         # External command execution
    ├── topology.py      # Topology document -> profiles, wallets, MSP dirs, env
    ├── log.py           # Reporter and logging handlers
    ├── config.py        # Layered configuration
    └── cli.py           # Command-line interface

A topology document from a local development network fans out like:
    gateway entries  -> <profiles>/<id>.json + CORE_PEER_LOCALMSPID/ADDRESS
    identity entries -> <wallets>/<org>/<id>.id + <msp>/<org>/<id>/msp/...
"""

__version__ = "0.3.0"

from weft.errors import (
    WeftError,
    InvalidPathSegment,
    MalformedCredential,
    InvalidGatewayEntry,
    InvalidTopology,
    AlreadyExists,
    NotFound,
    IOFailure,
)

from weft.sanitize import sanitize

from weft.codec import (
    Identity,
    WalletEntry,
    WalletFormat,
    MspCredentialSet,
)

from weft.wallet import WalletStore

from weft.topology import (
    TopologyProcessor,
    ProcessResult,
    OrgEnvironmentSet,
)

__all__ = [
    "__version__",
    "WeftError",
    "InvalidPathSegment",
    "MalformedCredential",
    "InvalidGatewayEntry",
    "InvalidTopology",
    "AlreadyExists",
    "NotFound",
    "IOFailure",
    "sanitize",
    "Identity",
    "WalletEntry",
    "WalletFormat",
    "MspCredentialSet",
    "WalletStore",
    "TopologyProcessor",
    "ProcessResult",
    "OrgEnvironmentSet",
]
