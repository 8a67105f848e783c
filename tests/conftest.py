"""
conftest.py — Shared fixtures for hc11_talker tests.
"""
import sys
from pathlib import Path

import pytest

# Ensure the parent directory is on sys.path so we can import the main module
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import hc11_talker as htk  # noqa: E402


@pytest.fixture
def jbug_mcu() -> htk.VirtualTalkerTransport:
    """A virtual MCU already running the JBug talker at 9600 baud."""
    t = htk.VirtualTalkerTransport(htk.JBUG_VARIANT, booted=True)
    t.open()
    return t


@pytest.fixture
def tru11_mcu() -> htk.VirtualTalkerTransport:
    """A virtual MCU already running the Tru11 talker at 9600 baud."""
    t = htk.VirtualTalkerTransport(htk.TRU11_VARIANT, booted=True)
    t.open()
    return t


@pytest.fixture
def write_srec(tmp_path):
    """Return a helper that writes ``[(address, data), ...]`` as an S-record file."""
    def _write(records, name="data.s19"):
        path = tmp_path / name
        lines = [htk.format_s0()]
        lines += [htk.format_s1(address, bytes(data)) for address, data in records]
        lines.append(htk.format_s9())
        path.write_text("".join(lines), encoding="ascii", newline="")
        return path
    return _write
