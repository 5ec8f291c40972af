import json
import os
import shlex
import sys
import time
from pathlib import Path
from typing import Callable, List

import pytest

from rgpeek.config import Settings

FAKE_PROGRAMS = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fake_programs.py")


def _fake_command(name: str) -> List[str]:
    return [sys.executable, FAKE_PROGRAMS, name]


@pytest.fixture
def fake_command() -> Callable[[str], List[str]]:
    return _fake_command


@pytest.fixture
def settings() -> Settings:
    editor = " ".join(shlex.quote(part) for part in _fake_command("editor"))
    return Settings(
        search_command=_fake_command("rg"),
        preview_command=_fake_command("bat"),
        editor=editor,
        batch_size=10,
    )


@pytest.fixture
def argv_log(tmp_path, monkeypatch) -> Path:
    path = tmp_path / "argv.log"
    monkeypatch.setenv("FAKE_ARGV_LOG", str(path))
    return path


# Script the output of the fake `rg` for every process spawned afterwards.
@pytest.fixture
def rg_output(tmp_path, monkeypatch):
    def _set(lines, delay: float = 0.0, hang: bool = False) -> Path:
        path = tmp_path / "rg_output.bin"
        data = b"".join((l if isinstance(l, bytes) else l.encode()) + b"\n" for l in lines)
        path.write_bytes(data)
        monkeypatch.setenv("FAKE_RG_OUTPUT", str(path))
        monkeypatch.setenv("FAKE_RG_DELAY", str(delay))
        monkeypatch.setenv("FAKE_RG_HANG", "1" if hang else "0")
        return path
    return _set


@pytest.fixture
def invocations():
    def _read(path: Path, program: str = None) -> list:
        if not path.exists():
            return []
        rows = [json.loads(line) for line in path.read_text().splitlines() if line.strip()]
        return [r for r in rows if (program is None) or (r["program"] == program)]
    return _read


# Call manager.tick() until *predicate* holds or *timeout* expires.
@pytest.fixture
def tick_until():
    def _tick(manager, predicate, timeout: float = 5.0) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            manager.tick()
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()
    return _tick


# Poll *predicate* until it holds or *timeout* expires.
@pytest.fixture
def wait_for():
    def _wait(predicate, timeout: float = 5.0) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()
    return _wait
