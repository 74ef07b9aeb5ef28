"""Core primitives shared by the weft components.

- JSON/YAML loading with consistent encoding
- JSON writing (pretty, trailing newline)
- input from a file path or stdin (``-``)
- directory helpers used by the CLI (create, clean, resolve wallet path)
- ``io_guard``: turns ``OSError`` into :class:`~weft.errors.IOFailure`
"""

from __future__ import annotations

import contextlib
import json
import pathlib
import shutil
import sys
from typing import Any, Iterator, Type, Union

import yaml

from weft.errors import IOFailure, MalformedCredential, NotFound, WeftError

PathLike = Union[str, pathlib.Path]


@contextlib.contextmanager
def io_guard(action: str, path: PathLike) -> Iterator[None]:
    """Re-raise filesystem errors inside the block as IOFailure."""
    try:
        yield
    except OSError as ex:
        raise IOFailure(f"failed to {action} {path}: {ex.strerror or ex}", path=str(path)) from ex


def load_json(path: PathLike) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def load_yaml(path: PathLike) -> Any:
    """Load YAML file with UTF-8 encoding."""
    return yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))


def write_json(path: PathLike, obj: Any) -> pathlib.Path:
    p = pathlib.Path(path)
    with io_guard("write", p):
        p.write_text(json.dumps(obj, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return p


def read_input(source: str, invalid: Type[WeftError] = MalformedCredential) -> str:
    """Read text from ``source``; ``-`` means stdin.

    Raises NotFound when the file does not exist and ``invalid`` when the
    content is not UTF-8.
    """
    try:
        if source == "-":
            return sys.stdin.read()
        p = pathlib.Path(source).resolve()
        if not p.exists():
            raise NotFound(f"input file not found at {p}", path=str(p))
        with io_guard("read", p):
            return p.read_bytes().decode("utf-8")
    except UnicodeDecodeError as ex:
        raise invalid(f"{source} is not UTF-8 text") from ex


def create_if_absent(path: PathLike) -> pathlib.Path:
    p = pathlib.Path(path).resolve()
    with io_guard("create directory", p):
        p.mkdir(parents=True, exist_ok=True)
    return p


def clean(path: PathLike) -> pathlib.Path:
    """Remove everything inside ``path`` but keep the directory itself."""
    p = pathlib.Path(path).resolve()
    if not p.is_dir():
        return p
    with io_guard("clean", p):
        for child in p.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
    return p


def resolve_wallet_path(path: PathLike, create: bool = False) -> pathlib.Path:
    """Resolve a wallet directory, optionally creating it.

    Raises NotFound when the directory is missing and ``create`` is False.
    """
    p = pathlib.Path(path).resolve()
    if p.is_dir():
        return p
    if not create:
        raise NotFound(f"wallet directory not found at {p}; use --createwallet to create it", path=str(p))
    return create_if_absent(p)
