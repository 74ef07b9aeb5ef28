#!/usr/bin/env python3
"""weft command-line interface.

Capabilities:
- list, import and export application wallet identities (current and compat formats)
- import provisioning-service identity JSON into a wallet or an MSP credentials directory
- import an MSP credentials directory into a wallet
- process a microfab topology document into gateway profiles, wallets and MSP
  directories, printing the peer CLI environment per organization
- show and validate configuration

Usage:
    weft <command> [subcommand] [options]
"""

from __future__ import annotations

import argparse
import functools
import json
import pathlib
import sys
from typing import Any, Callable, List, Optional

from weft import __version__, msp
from weft.config import ConfigError, get_config, get_config_manager
from weft.core import clean, create_if_absent, read_input, resolve_wallet_path
from weft.errors import MalformedCredential, WeftError
from weft.log import configure_logging, disable_cli_log, enable_cli_log, report
from weft.topology import TopologyProcessor
from weft.wallet import WalletStore


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def reports_errors(func: Callable[[argparse.Namespace], int]) -> Callable[[argparse.Namespace], int]:
    """Report engine errors as exit status 1 and configuration errors as 2."""
    @functools.wraps(func)
    def wrapper(args: argparse.Namespace) -> int:
        try:
            return func(args)
        except WeftError as ex:
            report(str(ex), error=True)
            return 1
        except CLIError as ex:
            report(str(ex), error=True)
            return ex.exit_code
        except ConfigError as ex:
            report(str(ex), error=True)
            return 2
    return wrapper


def _wallet_compat(args: argparse.Namespace) -> bool:
    return bool(getattr(args, "compat", False)) or get_config().wallet.compat.get()


def _load_identity_json(path: str) -> Any:
    text = read_input(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as ex:
        raise MalformedCredential(f"{path} is not valid JSON: {ex}") from ex


# ---------------------------------------------------------------------------
# wallet
# ---------------------------------------------------------------------------


@reports_errors
def cmd_wallet_ls(args: argparse.Namespace) -> int:
    wallet_path = resolve_wallet_path(args.walletpath)
    report("Listing application wallet identities", val=str(wallet_path))
    store = WalletStore(wallet_path)
    if getattr(args, "long", False):
        print(json.dumps([store.describe(name) for name in store.list()], indent=2))
    else:
        for name in store.list():
            print(name)
    return 0


@reports_errors
def cmd_wallet_import_mspcreds(args: argparse.Namespace) -> int:
    report("Adding identity from MSP credentials", val=args.mspdir)
    wallet_path = resolve_wallet_path(args.walletpath, create=args.createwallet)
    store = WalletStore(wallet_path, compat=_wallet_compat(args))
    store.import_from_msp_directory(pathlib.Path(args.mspdir), args.mspid, overwrite=args.force)
    return 0


@reports_errors
def cmd_wallet_import_ibp(args: argparse.Namespace) -> int:
    report("Adding provisioned identity", val=args.json)
    wallet_path = resolve_wallet_path(args.walletpath, create=args.createwallet)
    store = WalletStore(wallet_path, compat=_wallet_compat(args))
    store.import_to_wallet(_load_identity_json(args.json), overwrite=args.force, msp_id=args.mspid or None)
    return 0


@reports_errors
def cmd_wallet_export_ibp(args: argparse.Namespace) -> int:
    report("Exporting identity", val=args.name)
    wallet_path = resolve_wallet_path(args.walletpath)
    store = WalletStore(wallet_path)
    out = pathlib.Path(args.json)
    if out.exists() and not args.force:
        raise CLIError(f"{out} already exists; use --force to overwrite it")
    store.export_to_file(args.name, out)
    return 0


# ---------------------------------------------------------------------------
# mspids
# ---------------------------------------------------------------------------


@reports_errors
def cmd_mspids_import_ibp(args: argparse.Namespace) -> int:
    report("Creating MSP structure", val=args.mspconfig)
    root = create_if_absent(args.mspconfig)
    creds = msp.write_provisioned_identity(root, _load_identity_json(args.json), args.mspid, node_ous=args.node_ous)
    report("Wrote MSP credentials", val=str(creds.msp_dir))
    return 0


# ---------------------------------------------------------------------------
# microfab
# ---------------------------------------------------------------------------


@reports_errors
def cmd_microfab(args: argparse.Namespace) -> int:
    processor = TopologyProcessor.from_config(
        get_config(),
        on_error=args.on_error,
        fetch_artifacts=False if args.no_fetch else None,
        compat=True if args.compat else None,
    )

    roots = [create_if_absent(p) for p in (args.profile, args.wallet, args.mspconfig)]
    if args.force:
        for p in roots:
            clean(p)
    profile_dir, wallet_root, msp_root = roots

    result = processor.process_file(args.config, profile_dir, wallet_root, msp_root)

    failed = [r for r in result.command_results if not r.ok]
    if failed:
        report(f"{len(failed)} of {len(result.command_results)} fetch commands failed", error=True)
    if result.failures:
        report(f"{len(result.failures)} topology entries failed", error=True)
        return 1
    return 0


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


def cmd_config_show(args: argparse.Namespace) -> int:
    print(get_config().to_yaml(), end="")
    return 0


def cmd_config_get(args: argparse.Namespace) -> int:
    try:
        value = get_config_manager().get(args.path)
    except ConfigError as ex:
        report(str(ex), error=True)
        return 1
    print(json.dumps(value))
    return 0


def cmd_config_validate(args: argparse.Namespace) -> int:
    errors = get_config_manager().validate()
    for e in errors:
        report(e, error=True)
    if not errors:
        report("Configuration is valid")
    return 1 if errors else 0


# ---------------------------------------------------------------------------
# parser
# ---------------------------------------------------------------------------


def _wallet_options(require_wallet: bool = True) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--walletpath", "-w", required=require_wallet, help="Path to application wallet")
    p.add_argument("--compat", "-c", action="store_true", help="Write the compat (earlier SDK) wallet format")
    p.add_argument("--createwallet", "-r", action="store_true", help="Create the wallet if not present")
    p.add_argument("--force", "-f", action="store_true", help="If the identity is already present, overwrite it")
    return p


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="weft",
        description="Convert identities between application wallets, MSP directories and JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("--version", "-v", action="version", version=f"weft v{__version__}")
    ap.add_argument("--quiet", "-q", action="store_true", help="Only report errors")
    ap.add_argument("--config", dest="config_file", default="", help="YAML configuration file")
    ap.add_argument("--log-format", choices=["text", "json"], default=None, help="Log output format")
    ap.add_argument("--log-level", choices=["debug", "info", "warning", "error"], default=None)
    sub = ap.add_subparsers(dest="cmd", required=True)

    wopts = _wallet_options()

    # wallet
    w = sub.add_parser("wallet", help="Work with an application wallet")
    w_sub = w.add_subparsers(dest="wallet_cmd", required=True)

    wls = w_sub.add_parser("ls", parents=[wopts], help="List wallet identities")
    wls.add_argument("--long", "-l", action="store_true", help="Show MSP id, format and certificate details")
    wls.set_defaults(func=cmd_wallet_ls)

    wi = w_sub.add_parser("import", help="Import an identity into the wallet")
    wi_sub = wi.add_subparsers(dest="import_cmd", required=True)

    wim = wi_sub.add_parser("mspcreds", parents=[wopts], help="Import from an MSP credentials directory")
    wim.add_argument("--mspdir", "-d", required=True, help="Directory holding the identity's msp/ folder")
    wim.add_argument("--mspid", "-m", required=True, help="MSP id to assign in this wallet")
    wim.set_defaults(func=cmd_wallet_import_mspcreds)

    wii = wi_sub.add_parser("ibp", parents=[wopts], help="Import provisioning-service identity JSON")
    wii.add_argument("--json", "-j", required=True, help="JSON identity file (- for stdin)")
    wii.add_argument("--mspid", "-m", default="", help="MSP id to assign (overrides the JSON)")
    wii.set_defaults(func=cmd_wallet_import_ibp)

    we = w_sub.add_parser("export", help="Export an identity from the wallet")
    we_sub = we.add_subparsers(dest="export_cmd", required=True)

    wei = we_sub.add_parser("ibp", parents=[wopts], help="Export as provisioning-service identity JSON")
    wei.add_argument("--json", "-j", required=True, help="Output JSON file")
    wei.add_argument("--name", "-n", required=True, help="Wallet identity name")
    wei.set_defaults(func=cmd_wallet_export_ibp)

    # mspids
    m = sub.add_parser("mspids", help="Work with an MSP credentials directory")
    m_sub = m.add_subparsers(dest="mspids_cmd", required=True)
    mi = m_sub.add_parser("import", help="Import identities into the MSP credentials layout")
    mi_sub = mi.add_subparsers(dest="import_cmd", required=True)

    mii = mi_sub.add_parser("ibp", help="Import provisioning-service identity JSON")
    mii.add_argument("--mspconfig", "-d", required=True, help="Root directory of the MSP credentials")
    mii.add_argument("--mspid", "-m", required=True, help="MSP id of the identity")
    mii.add_argument("--json", "-j", required=True, help="JSON identity file (- for stdin)")
    mii.add_argument("--node-ous", action="store_true", help="Also write a NodeOUs config.yaml")
    mii.set_defaults(func=cmd_mspids_import_ibp)

    # microfab
    mf = sub.add_parser(
        "microfab",
        help="Process microfab output into MSP credentials, gateway profiles and application wallets",
    )
    mf.add_argument("--wallet", "-w", required=True, help="Parent directory of application wallets")
    mf.add_argument("--profile", "-p", required=True, help="Parent directory of gateway profiles")
    mf.add_argument("--mspconfig", "-m", required=True, help="Root directory of the MSP credentials")
    mf.add_argument("--config", "-c", default="-", help="Topology JSON from microfab (- for stdin)")
    mf.add_argument("--force", "-f", action="store_true", help="Clean the output directories first")
    mf.add_argument("--on-error", choices=["abort", "continue"], default=None, help="Entry failure policy")
    mf.add_argument("--no-fetch", action="store_true", help="Do not fetch CA certificates and config.yaml")
    mf.add_argument("--compat", action="store_true", help="Write the compat (earlier SDK) wallet format")
    mf.set_defaults(func=cmd_microfab)

    # config
    c = sub.add_parser("config", help="Configuration")
    c_sub = c.add_subparsers(dest="config_cmd", required=True)
    c_sub.add_parser("show", help="Show all configuration").set_defaults(func=cmd_config_show)
    cg = c_sub.add_parser("get", help="Get a configuration value")
    cg.add_argument("path", help="Config path (e.g., microfab.container)")
    cg.set_defaults(func=cmd_config_get)
    c_sub.add_parser("validate", help="Validate configuration").set_defaults(func=cmd_config_validate)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    mgr = get_config_manager()
    try:
        mgr.load_defaults()
        if args.config_file:
            mgr.load_from_file(args.config_file)
    except ConfigError as ex:
        print(f"ERROR: {ex}", file=sys.stderr)
        return 2

    cfg = mgr.config.observability
    configure_logging(args.log_level or cfg.log_level.get(), args.log_format or cfg.log_format.get())
    if args.quiet:
        disable_cli_log()
    else:
        enable_cli_log()

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
