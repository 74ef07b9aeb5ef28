import logging
import os
import pathlib
import sys

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import weft`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
_TESTS_DIR = pathlib.Path(__file__).resolve().parent
for _p in (_REPO_ROOT, _TESTS_DIR):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from helpers import FakeRunner, Recorder, make_credentials  # noqa: E402


@pytest.fixture(scope="session")
def credentials() -> tuple[bytes, bytes]:
    return make_credentials("admin")


@pytest.fixture(scope="session")
def cert_pem(credentials) -> bytes:
    return credentials[0]


@pytest.fixture(scope="session")
def key_pem(credentials) -> bytes:
    return credentials[1]


@pytest.fixture(scope="session")
def ca_pem() -> bytes:
    return make_credentials("ca.org1.example.com")[0]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Fresh configuration and reporting state for every test."""
    from weft.config import ConfigManager
    from weft.log import enable_cli_log

    for k in list(os.environ):
        if k.startswith("WEFT_"):
            monkeypatch.delenv(k, raising=False)
    ConfigManager().reset()
    yield
    ConfigManager().reset()
    enable_cli_log()
    weft_logger = logging.getLogger("weft")
    for h in list(weft_logger.handlers):
        weft_logger.removeHandler(h)
    weft_logger.setLevel(logging.NOTSET)
    weft_logger.propagate = True
