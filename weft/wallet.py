"""Application wallet store.

A wallet is a directory holding one JSON file per identity, named
``<sanitized name>.id``. New entries are written in the current format, or in
the compat format when the store was opened with ``compat=True``; reading
accepts both and picks the decoder from the file's format marker.

Writes are last-writer-wins: nothing here locks the wallet against other
processes.
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Dict, Iterator, Optional, Union

from weft import codec
from weft.codec import Identity, WalletEntry, WalletFormat
from weft.core import io_guard, write_json
from weft.errors import AlreadyExists, MalformedCredential, NotFound
from weft.log import Reporter, report
from weft.sanitize import sanitize

logger = logging.getLogger(__name__)

WALLET_SUFFIX = ".id"


class WalletStore:
    """CRUD access to one wallet directory."""

    def __init__(self, path: Union[str, pathlib.Path], compat: bool = False, reporter: Reporter = report):
        self.path = pathlib.Path(path)
        self.format = WalletFormat.from_flag(compat)
        self._report = reporter

    def entry_path(self, name: str) -> pathlib.Path:
        return self.path / f"{sanitize(name)}{WALLET_SUFFIX}"

    def list(self) -> Iterator[str]:
        """Yield the names of the identities in the wallet.

        Each call re-reads the directory, so the sequence reflects the
        current state and can be restarted by calling again.
        """
        if not self.path.is_dir():
            raise NotFound(f"wallet directory not found at {self.path}", path=str(self.path))
        with io_guard("list", self.path):
            files = sorted(self.path.glob(f"*{WALLET_SUFFIX}"))
        for p in files:
            if p.is_file():
                yield p.stem

    def exists(self, name: str) -> bool:
        return self.entry_path(name).is_file()

    def read_entry(self, name: str) -> WalletEntry:
        p = self.entry_path(name)
        if not p.is_file():
            raise NotFound(f"identity '{name}' not found in wallet {self.path}", path=str(p))
        with io_guard("read", p):
            data = p.read_bytes()
        try:
            doc = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as ex:
            raise MalformedCredential(f"wallet entry {p} is not UTF-8 text") from ex
        except json.JSONDecodeError as ex:
            raise MalformedCredential(f"wallet entry {p} is not valid JSON: {ex}") from ex
        return codec.decode_wallet_entry(doc, p.stem)

    def put(
        self,
        identity: Identity,
        *,
        name: Optional[str] = None,
        overwrite: bool = False,
        require_msp_id: bool = True,
    ) -> pathlib.Path:
        """Encode ``identity`` and store it under ``name`` (default: its id).

        With ``require_msp_id=False`` an identity without an MSP id is stored
        with an empty one instead of being rejected.
        """
        label = name or identity.id
        if require_msp_id and not identity.msp_id:
            raise MalformedCredential(f"identity '{label}' has no MSP id")
        p = self.entry_path(label)
        if p.exists() and not overwrite:
            raise AlreadyExists(f"identity '{label}' already exists in wallet {self.path}", path=str(p))

        entry = codec.to_wallet_entry(identity, self.format, name=label)
        with io_guard("create directory", self.path):
            self.path.mkdir(parents=True, exist_ok=True)
        write_json(p, codec.encode_wallet_entry(entry))
        logger.debug("stored %s wallet entry %s", self.format.value, p)
        self._report("Added identity", val=f"{label} ({identity.msp_id}) -> {p}")
        return p

    def import_to_wallet(
        self,
        identity_json: Union[str, Dict[str, Any]],
        overwrite: bool = False,
        msp_id: Optional[str] = None,
    ) -> pathlib.Path:
        """Import one identity given as provisioning-service JSON."""
        if isinstance(identity_json, str):
            try:
                doc = json.loads(identity_json)
            except json.JSONDecodeError as ex:
                raise MalformedCredential(f"identity JSON is not valid: {ex}") from ex
        else:
            doc = identity_json
        identity = codec.from_provisioning_json(doc, msp_id)
        return self.put(identity, overwrite=overwrite)

    def export_from_wallet(self, name: str) -> Identity:
        return codec.from_wallet_entry(self.read_entry(name), owner_label=self.path.name)

    def export_to_file(self, name: str, json_path: Union[str, pathlib.Path]) -> pathlib.Path:
        """Write one identity as provisioning-service JSON."""
        identity = self.export_from_wallet(name)
        out = write_json(json_path, codec.to_provisioning_json(identity))
        self._report("Exported identity", val=f"{name} -> {out}")
        return out

    def import_from_msp_directory(
        self,
        msp_root: Union[str, pathlib.Path],
        msp_id: str,
        overwrite: bool = False,
        name: Optional[str] = None,
    ) -> pathlib.Path:
        """Read an MSP credential directory and store it, tagged with ``msp_id``."""
        identity = codec.from_msp_directory(pathlib.Path(msp_root), msp_id)
        return self.put(identity, name=name, overwrite=overwrite)

    def describe(self, name: str) -> Dict[str, Any]:
        """Summary of one entry for listings."""
        entry = self.read_entry(name)
        out: Dict[str, Any] = {
            "name": entry.name,
            "msp_id": entry.msp_id,
            "format": entry.format.value,
            "can_sign": codec.from_wallet_entry(entry).can_sign,
        }
        out.update(codec.certificate_summary(entry.certificate))
        return out
