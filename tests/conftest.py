import json
import logging
from pathlib import Path

import pytest
import requests


@pytest.fixture()
def workdir(tmp_path, monkeypatch) -> Path:
    """Run the test from an empty temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def write_sidecar(tmp_path):
    """Write a scaResults.json-style file and return its path."""

    def _write(payload, name: str = "scaResults.json") -> Path:
        path = tmp_path / name
        if isinstance(payload, str):
            path.write_text(payload, encoding="utf-8")
        else:
            path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


class FakeResponse:
    def __init__(self, status_code: int = 201) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession(requests.Session):
    """Records POST calls instead of talking to the API."""

    def __init__(self, *, status_code: int = 201, raise_exc: Exception | None = None) -> None:
        super().__init__()
        self.calls: list[dict] = []
        self._status_code = status_code
        self._raise_exc = raise_exc

    def post(self, url, **kwargs):  # type: ignore[override]
        self.calls.append({"url": url, **kwargs})
        if self._raise_exc is not None:
            raise self._raise_exc
        return FakeResponse(self._status_code)


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def make_session():
    return FakeSession


@pytest.fixture(autouse=True)
def reset_package_logger():
    """CLI tests attach handlers bound to captured stdout; drop them afterwards."""
    yield
    lg = logging.getLogger("sca_action")
    lg.handlers.clear()
    lg.setLevel(logging.NOTSET)
    lg.propagate = True
