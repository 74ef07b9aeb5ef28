"""Topology processor: one network description in, every local artifact out.

A topology document is a JSON array of entries tagged by ``type``:

- ``gateway``: a connection profile for one organization's gateway. It is
  written verbatim to ``<profile_dir>/<id>.json`` and seeds that
  organization's environment with ``CORE_PEER_LOCALMSPID`` and
  ``CORE_PEER_ADDRESS``.
- ``identity``: certificate + key (base64 PEM) owned by a ``wallet`` label.
  It is stored in ``<wallet_root>/<wallet>/`` and materialized as an MSP
  directory at ``<msp_root>/<wallet>/<id>/``; the first identity of an
  organization adds ``CORE_PEER_MSPCONFIGPATH``. Unless the label is
  ``orderer``, two fetches are queued for the CA certificate and the
  ``config.yaml`` descriptor, which only exist inside the running network.
- anything else is ignored.

Gateways are processed before identities; identities run one at a time in
document order, and the queued fetches run as a single batch at the end.
Each ``process`` call owns its environment accumulator and fetch queue.

Failure policy: ``abort`` (default) lets the first entry error propagate;
``continue`` records it as an :class:`EntryFailure` on the result and moves
on to the next entry.
"""

from __future__ import annotations

import enum
import json
import logging
import pathlib
import shlex
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from weft import codec, msp, schema
from weft.codec import Identity, MspCredentialSet
from weft.config import ON_ERROR_POLICIES, ValidationError, WeftConfig
from weft.core import create_if_absent, read_input, write_json
from weft.errors import InvalidGatewayEntry, InvalidTopology, MalformedCredential, WeftError
from weft.log import Reporter, report
from weft.sanitize import sanitize
from weft.shell import CommandResult, CommandRunner, ShellCommandRunner, combined_output
from weft.wallet import WalletStore

logger = logging.getLogger(__name__)

ORDERER_LABEL = "orderer"

ENV_LOCALMSPID = "CORE_PEER_LOCALMSPID"
ENV_ADDRESS = "CORE_PEER_ADDRESS"
ENV_MSPCONFIGPATH = "CORE_PEER_MSPCONFIGPATH"


class EntryKind(enum.Enum):
    GATEWAY = "gateway"
    IDENTITY = "identity"
    UNKNOWN = "unknown"


def entry_kind(raw: Dict[str, Any]) -> EntryKind:
    t = raw.get("type")
    if t == EntryKind.GATEWAY.value:
        return EntryKind.GATEWAY
    if t == EntryKind.IDENTITY.value:
        return EntryKind.IDENTITY
    return EntryKind.UNKNOWN


# ---------------------------------------------------------------------------
# Entry variants
# ---------------------------------------------------------------------------


@dataclass
class OrganizationRef:
    name: str
    msp_id: str
    peers: List[str] = field(default_factory=list)


@dataclass
class GatewayEntry:
    kind: ClassVar[EntryKind] = EntryKind.GATEWAY

    id: str
    organization: str
    organizations: Dict[str, OrganizationRef]
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GatewayEntry":
        errors = schema.validate_with_schema(raw, schema.GATEWAY_ENTRY)
        if errors:
            raise InvalidGatewayEntry(f"gateway '{raw.get('id', '?')}': " + "; ".join(errors))
        orgs = {
            name: OrganizationRef(name=name, msp_id=o["mspid"], peers=list(o["peers"]))
            for name, o in raw["organizations"].items()
        }
        return cls(id=raw["id"], organization=raw["client"]["organization"], organizations=orgs, raw=raw)

    def local_organization(self) -> OrganizationRef:
        """The organization named by ``client.organization``, with at least one peer."""
        org = self.organizations.get(self.organization)
        if org is None:
            raise InvalidGatewayEntry(
                f"gateway '{self.id}': client organization '{self.organization}' is not in organizations"
            )
        if not org.peers:
            raise InvalidGatewayEntry(f"gateway '{self.id}': organization '{org.name}' lists no peers")
        return org


@dataclass
class IdentityEntry:
    kind: ClassVar[EntryKind] = EntryKind.IDENTITY

    id: str
    wallet: str
    private_key: str
    cert: str
    msp_id: Optional[str] = None
    ca: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "IdentityEntry":
        errors = schema.validate_with_schema(raw, schema.IDENTITY_ENTRY)
        if errors:
            label = raw.get("id") or raw.get("name") or "?"
            raise MalformedCredential(f"identity '{label}': " + "; ".join(errors))
        return cls(
            id=raw.get("id") or raw["name"],
            wallet=raw["wallet"],
            private_key=raw["private_key"],
            cert=raw["cert"],
            msp_id=raw.get("msp_id") or raw.get("mspid") or None,
            ca=raw.get("ca") or None,
            raw=raw,
        )

    def to_identity(self, msp_id: str) -> Identity:
        return Identity(
            id=self.id,
            msp_id=msp_id,
            certificate=codec.decode_base64_pem(self.cert),
            private_key=codec.decode_base64_pem(self.private_key),
            owner_label=self.wallet,
        )


@dataclass
class UnknownEntry:
    kind: ClassVar[EntryKind] = EntryKind.UNKNOWN

    type: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


TopologyEntry = Union[GatewayEntry, IdentityEntry, UnknownEntry]


def validate_topology(doc: Any) -> List[Dict[str, Any]]:
    """Check the document is an array of typed objects and return it."""
    errors = schema.validate_with_schema(doc, schema.TOPOLOGY)
    if errors:
        raise InvalidTopology("topology document: " + "; ".join(errors))
    return list(doc)


def parse_entry(raw: Dict[str, Any]) -> TopologyEntry:
    kind = entry_kind(raw)
    if kind == EntryKind.GATEWAY:
        return GatewayEntry.from_dict(raw)
    if kind == EntryKind.IDENTITY:
        return IdentityEntry.from_dict(raw)
    return UnknownEntry(type=str(raw.get("type")), raw=raw)


def parse_topology(doc: Any) -> List[TopologyEntry]:
    return [parse_entry(raw) for raw in validate_topology(doc)]


def load_topology(source: str) -> List[Dict[str, Any]]:
    """Read a topology document from a file path or ``-`` (stdin)."""
    text = read_input(source, invalid=InvalidTopology)
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as ex:
        raise InvalidTopology(f"topology document is not valid JSON: {ex}") from ex
    return validate_topology(doc)


# ---------------------------------------------------------------------------
# Accumulators and results
# ---------------------------------------------------------------------------


class OrgEnvironmentSet:
    """Per-organization environment assignments, in the order they were added."""

    def __init__(self) -> None:
        self._lines: Dict[str, List[Tuple[str, str]]] = {}

    def __contains__(self, org: str) -> bool:
        return org in self._lines

    def append(self, org: str, name: str, value: str) -> None:
        self._lines.setdefault(org, []).append((name, value))

    def has_var(self, org: str, name: str) -> bool:
        return any(n == name for n, _ in self._lines.get(org, []))

    def lines(self, org: str) -> List[str]:
        return [f"{n}={v}" for n, v in self._lines.get(org, [])]

    def as_dict(self) -> Dict[str, List[str]]:
        return {org: self.lines(org) for org in self._lines}

    def render(self, org: str) -> str:
        """Shell ``export`` lines for one organization."""
        return "\n".join(f"export {n}={shlex.quote(v)}" for n, v in self._lines.get(org, []))


@dataclass
class FetchRequest:
    command: str
    msp_root: pathlib.Path
    artifact: str


@dataclass
class EntryFailure:
    index: int
    kind: EntryKind
    entry_id: str
    error: WeftError

    def describe(self) -> str:
        return f"entry {self.index} ({self.kind.value} '{self.entry_id}'): {self.error}"


@dataclass
class ProcessResult:
    environment: Dict[str, List[str]] = field(default_factory=dict)
    command_results: List[CommandResult] = field(default_factory=list)
    failures: List[EntryFailure] = field(default_factory=list)
    profiles: List[pathlib.Path] = field(default_factory=list)
    wallet_entries: List[pathlib.Path] = field(default_factory=list)
    msp_roots: List[pathlib.Path] = field(default_factory=list)

    @property
    def output(self) -> str:
        return combined_output(self.command_results)

    @property
    def ok(self) -> bool:
        return not self.failures and all(r.ok for r in self.command_results)


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class TopologyProcessor:
    """Fan a topology document out into profiles, wallets and MSP directories."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        reporter: Reporter = report,
        *,
        compat: bool = False,
        on_error: str = "abort",
        container: str = "microfab",
        data_dir: str = "/opt/microfab/data",
        fetch_artifacts: bool = True,
    ):
        if on_error not in ON_ERROR_POLICIES:
            raise ValueError(f"on_error must be one of {ON_ERROR_POLICIES}, got {on_error!r}")
        self.runner = runner or ShellCommandRunner()
        self.reporter = reporter
        self.compat = compat
        self.on_error = on_error
        self.container = container
        self.data_dir = data_dir.rstrip("/")
        self.fetch_artifacts = fetch_artifacts

    @classmethod
    def from_config(
        cls,
        config: WeftConfig,
        runner: Optional[CommandRunner] = None,
        reporter: Reporter = report,
        **overrides: Any,
    ) -> "TopologyProcessor":
        """Build a processor from ``config``; non-None ``overrides`` win over it.

        Raises ValidationError (a ConfigError) when a configured value that is
        not overridden cannot be used.
        """
        values = {
            "compat": ("wallet.compat", config.wallet.compat),
            "on_error": ("microfab.on_error", config.microfab.on_error),
            "container": ("microfab.container", config.microfab.container),
            "data_dir": ("microfab.data_dir", config.microfab.data_dir),
            "fetch_artifacts": ("microfab.fetch_artifacts", config.microfab.fetch_artifacts),
        }
        settings = {
            key: overrides[key] if overrides.get(key) is not None else value.require(path)
            for key, (path, value) in values.items()
        }
        if runner is None:
            runner = ShellCommandRunner(timeout=config.shell.timeout_seconds.require("shell.timeout_seconds"))
        try:
            return cls(runner, reporter, **settings)
        except ValueError as ex:
            raise ValidationError(str(ex)) from ex

    def process_file(
        self,
        source: str,
        profile_dir: pathlib.Path,
        wallet_root: pathlib.Path,
        msp_root: pathlib.Path,
    ) -> ProcessResult:
        return self.process(load_topology(source), profile_dir, wallet_root, msp_root)

    def process(
        self,
        topology: Sequence[Any],
        profile_dir: pathlib.Path,
        wallet_root: pathlib.Path,
        msp_root: pathlib.Path,
    ) -> ProcessResult:
        entries = validate_topology(topology)
        profile_dir, wallet_root, msp_root = (pathlib.Path(p).resolve() for p in (profile_dir, wallet_root, msp_root))

        result = ProcessResult()
        env = OrgEnvironmentSet()
        org_msp_ids: Dict[str, str] = {}
        fetches: List[FetchRequest] = []

        gateways = [(i, raw) for i, raw in enumerate(entries) if entry_kind(raw) == EntryKind.GATEWAY]
        identities = [(i, raw) for i, raw in enumerate(entries) if entry_kind(raw) == EntryKind.IDENTITY]
        ignored = len(entries) - len(gateways) - len(identities)
        if ignored:
            logger.debug("ignoring %d topology entries of unknown type", ignored)

        for index, raw in gateways:
            with self._entry(result, index, EntryKind.GATEWAY, raw):
                gateway = GatewayEntry.from_dict(raw)
                result.profiles.append(self._process_gateway(gateway, profile_dir, env, org_msp_ids))

        for index, raw in identities:
            with self._entry(result, index, EntryKind.IDENTITY, raw):
                ident = IdentityEntry.from_dict(raw)
                wallet_file, creds = self._process_identity(ident, wallet_root, msp_root, env, org_msp_ids)
                result.wallet_entries.append(wallet_file)
                result.msp_roots.append(creds.root)
                if self.fetch_artifacts and ident.wallet.lower() != ORDERER_LABEL:
                    fetches.extend(self._fetch_requests(ident.wallet, creds))

        result.command_results = self._run_fetches(fetches)
        result.environment = env.as_dict()

        self.reporter("Environment variables:")
        for org in result.environment:
            self.reporter(org)
            self.reporter(env.render(org))
        return result

    def _entry(self, result: ProcessResult, index: int, kind: EntryKind, raw: Dict[str, Any]) -> "_EntryScope":
        return _EntryScope(self, result, index, kind, str(raw.get("id") or raw.get("name") or ""))

    def _process_gateway(
        self,
        gateway: GatewayEntry,
        profile_dir: pathlib.Path,
        env: OrgEnvironmentSet,
        org_msp_ids: Dict[str, str],
    ) -> pathlib.Path:
        profile_path = profile_dir / f"{sanitize(gateway.id)}.json"
        org = gateway.local_organization()

        create_if_absent(profile_dir)
        write_json(profile_path, gateway.raw)
        env.append(org.name, ENV_LOCALMSPID, org.msp_id)
        env.append(org.name, ENV_ADDRESS, org.peers[0])
        org_msp_ids[org.name] = org.msp_id
        self.reporter("Created gateway profile", val=str(profile_path))
        return profile_path

    def _process_identity(
        self,
        ident: IdentityEntry,
        wallet_root: pathlib.Path,
        msp_root: pathlib.Path,
        env: OrgEnvironmentSet,
        org_msp_ids: Dict[str, str],
    ) -> Tuple[pathlib.Path, MspCredentialSet]:
        label = sanitize(ident.wallet)
        ident_dir = sanitize(ident.id)

        msp_id = ident.msp_id or org_msp_ids.get(ident.wallet) or ""
        if not msp_id:
            logger.warning(
                "identity '%s' has no msp_id and no gateway for '%s'; stored without one", ident.id, ident.wallet
            )
        identity = ident.to_identity(msp_id)

        wallet_dir = create_if_absent(wallet_root / label)
        store = WalletStore(wallet_dir, compat=self.compat, reporter=self.reporter)
        wallet_file = store.put(identity, overwrite=True, require_msp_id=False)

        creds = msp.write_identity(msp_root / label / ident_dir, identity)
        if ident.ca:
            msp.write_ca_certificate(creds.root, codec.decode_base64_pem(ident.ca))

        if ident.wallet in env and not env.has_var(ident.wallet, ENV_MSPCONFIGPATH):
            env.append(ident.wallet, ENV_MSPCONFIGPATH, str(creds.msp_dir))
        elif ident.wallet not in env:
            logger.warning("no gateway for organization '%s'; %s not set", ident.wallet, ENV_MSPCONFIGPATH)
        return wallet_file, creds

    def _container_path(self, label: str, *parts: str) -> str:
        return "/".join([self.data_dir, f"peer-{sanitize(label).lower()}", "msp", *parts])

    def _fetch_requests(self, label: str, creds: MspCredentialSet) -> List[FetchRequest]:
        base = ["docker", "exec", self.container, "cat"]
        ca_src = self._container_path(label, "cacerts", codec.CA_CERT_FILENAME)
        cfg_src = self._container_path(label, codec.CONFIG_DESCRIPTOR_FILENAME)
        return [
            FetchRequest(shlex.join(base + [ca_src]), creds.root, "cacert"),
            FetchRequest(shlex.join(base + [cfg_src]), creds.root, "config"),
        ]

    def _run_fetches(self, fetches: List[FetchRequest]) -> List[CommandResult]:
        if not fetches:
            return []
        self.reporter("Running commands to get the final file parts", val=len(fetches))
        results = self.runner.run([f.command for f in fetches])

        for fetch, res in zip(fetches, results):
            if res.ok and not res.stdout.strip():
                res.error = "command returned no content"
            if not res.ok:
                self.reporter(res.describe(), error=True)
                continue
            if fetch.artifact == "cacert":
                msp.write_ca_certificate(fetch.msp_root, res.stdout)
            else:
                msp.write_config_descriptor(fetch.msp_root, res.stdout)
        logger.debug(combined_output(results))
        return results


class _EntryScope:
    """Apply the processor's failure policy to one entry."""

    def __init__(self, processor: TopologyProcessor, result: ProcessResult, index: int, kind: EntryKind, entry_id: str):
        self.processor = processor
        self.result = result
        self.index = index
        self.kind = kind
        self.entry_id = entry_id

    def __enter__(self) -> "_EntryScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None or not isinstance(exc, WeftError):
            return False
        if self.processor.on_error == "abort":
            return False
        failure = EntryFailure(self.index, self.kind, self.entry_id, exc)
        self.result.failures.append(failure)
        self.processor.reporter(failure.describe(), error=True)
        return True
