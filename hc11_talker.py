#!/usr/bin/env python3
"""
hc11_talker.py — 68HC11 Bootstrap Talker Programmer
=====================================================

Reads, verifies and programs the memory of 68HC11-family MCUs over a
plain serial link, using nothing but the factory bootstrap ROM.

How it works:
    1. The MCU is reset in bootstrap mode. The ROM waits for a 0xFF sync
       byte and then 256 program bytes, each echoed back, at 1200 baud
       (or 7618 baud in fast mode).
    2. The downloaded "talker" runs from RAM and serves a tiny
       command / length / address / payload protocol at 9600 baud.
    3. Every memory operation (read, write, EEPROM erase / program,
       EPROM program) is built on that protocol.

Supported talkers:
    jbug    JBug11-compatible talker (TBug11). Read 0x01, write 0x41,
            command echoed as its one's complement. EEPROM and EPROM are
            programmed host-side through the PPROG / EPROG registers.
    tru11   Tru11 talker. Read 0x01, write 0x02, EEPROM 0x03, EPROM 0x04,
            EPROM (E20, 12V) 0x05. The talker erases and programs itself.

Files:
    Talker images, dumps and programming data are Motorola S-records
    (S0 / S1 / S9, CRLF line endings).

Requires: Python 3.10+, pyserial, rich
Optional: ftd2xx (D2XX transport)

MIT License

Copyright (c) 2026 Jason King (pcmhacking.net: kingaustraliagg)

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""


# ═══════════════════════════════════════════════════════════════════════
# SECTION 0 — IMPORTS & GLOBALS
# ═══════════════════════════════════════════════════════════════════════

from __future__ import annotations

import sys
import time
import logging
import argparse
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Optional, Callable, List, Tuple, Dict, Mapping, TextIO

import serial
import serial.tools.list_ports
from rich.logging import RichHandler

# FTDI D2XX (optional)
try:
    import ftd2xx
    D2XX_AVAILABLE = True
except ImportError:
    D2XX_AVAILABLE = False

# ── Version & Metadata ──
__version__ = "0.1.0"
__app_name__ = "HC11 Talker"

# ── Logging Setup ──
LOG_DIR = Path.home() / ".hc11_talker" / "logs"


def setup_logging(
    name: str = "hc11_talker",
    level: int = logging.DEBUG,
    console_level: int = logging.WARNING,
    log_dir: Optional[Path] = None,
    rich_console: bool = True,
) -> logging.Logger:
    """
    Configure and return a logger.

    Args:
        name:          Logger name and log-file prefix.
        level:         Logger level (DEBUG captures wire traffic to file).
        console_level: Level for terminal output (WARNING+ by default so
                       dumps and verify reports stay readable).
        log_dir:       Override log directory (default: ~/.hc11_talker/logs).
        rich_console:  Use the Rich handler for the console.

    Returns:
        Configured ``logging.Logger`` instance.

    Log files: ``<log_dir>/<name>_YYYYMMDD_HHMMSS.log``
    """
    log_dir = Path(log_dir or LOG_DIR)

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.setLevel(level)

    # ── File handler: captures everything (DEBUG+) ──
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"{name}_{ts}.log"
    file_fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(file_fmt)
    logger.addHandler(fh)

    # ── Console handler ──
    if rich_console:
        ch = RichHandler(
            level=console_level,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
    else:
        ch = logging.StreamHandler(sys.stderr)
        ch.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S",
        ))
    ch.setLevel(console_level)
    logger.addHandler(ch)

    # Startup banner (file only at the default console level)
    logger.info("=" * 60)
    logger.info("Logger initialized: %s", name)
    logger.info("Log file: %s", log_file)
    logger.info("Console level: %s", logging.getLevelName(console_level))
    logger.info("=" * 60)

    return logger

log = logging.getLogger("hc11_talker")


# ═══════════════════════════════════════════════════════════════════════
# SECTION 1 — CONSTANTS & PROTOCOL DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════

# ── Serial link ──
BOOT_BAUD_SLOW = 1200
BOOT_BAUD_FAST = 7618       # E-series bootloader with 8 MHz crystal, fast mode
TALKER_BAUD = 9600
BOOT_SYNC_BYTE = 0xFF
SETTLE_DELAY_MS = 75        # boot ROM must time out before the talker listens

# ── Protocol limits ──
BOOTLOADER_MAX_BYTE_COUNT = 256
TALKER_MAX_BYTE_COUNT = 256

# ── Defaults ──
DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_TIMEOUT_MS = 1000
DEFAULT_CHUNK_SIZE = 256
DEFAULT_PROG_CHUNK_SIZE = 2
DEFAULT_SREC_DATALEN = 16
DEFAULT_PROG_DELAY_MS = 0
DEFAULT_TALKER_FILE = "talker.s19"
DEFAULT_VARIANT = "jbug"

# ── 68HC11 register block ($1000 base) ──
REG_BPROT = 0x1035          # block protect
REG_EPROG = 0x1036          # EPROM programming control (MC68HC711E20)
REG_PPROG = 0x103B          # EEPROM / EPROM programming control
REG_HPRIO = 0x103C          # highest priority interrupt & misc (mode bits)
REG_CONFIG = 0x103F         # not readable until the next reset once programmed

HPRIO_SPECIAL_TEST = 0x66
BPROT_CLEAR = 0x00
BPROT_ALL = 0x1F
PROG_DISABLE = 0x00
PROG_DUMMY_BYTE = 0xFF

# ── On-chip EEPROM (E-series, 512 bytes) ──
EEPROM_START = 0xB600
EEPROM_END = 0xB7FF
EEPROM_ROW_SIZE = 16

# ── Motorola S-records ──
SREC_HEADER = "S0030000FC\r\n"
SREC_TERMINATOR = "S9030000FC\r\n"
SREC_ADDR_CHECKSUM_COUNT = 3
SREC_MAX_DATA = 252
SREC_MIN_LINE_LEN = 8


class EchoPolicy(Enum):
    """How the bytes read back after a transmit are checked."""
    IGNORE = "ignore"
    VERIFY_DIRECT = "direct"
    VERIFY_COMPLEMENT = "complement"


class MemoryKind(Enum):
    """Memory technology a write targets."""
    NORMAL = "normal"
    EEPROM = "eeprom"
    EPROM = "eprom"
    EPROM_E20 = "eprom-e20"


@dataclass(frozen=True)
class ProgSequence:
    """
    One PPROG / EPROG state machine: latch, store byte, program, disable.

    The byte stored at the target address is programmed for the program
    sequences and is a don't-care for the erase sequences.
    """
    name: str
    control_reg: int
    latch: int
    program: int


EEPROM_PROGRAM = ProgSequence("EEPROM program", REG_PPROG, 0x02, 0x03)
EEPROM_BULK_ERASE = ProgSequence("EEPROM bulk erase", REG_PPROG, 0x06, 0x07)
EEPROM_ROW_ERASE = ProgSequence("EEPROM row erase", REG_PPROG, 0x0E, 0x0F)
EEPROM_BYTE_ERASE = ProgSequence("EEPROM byte erase", REG_PPROG, 0x16, 0x17)
EPROM_PROGRAM = ProgSequence("EPROM program", REG_PPROG, 0x20, 0x21)
EPROM_PROGRAM_E20 = ProgSequence("EPROM program (E20)", REG_EPROG, 0x20, 0x21)

ERASE_SEQUENCES: Mapping[str, ProgSequence] = MappingProxyType({
    "bulk": EEPROM_BULK_ERASE,
    "row": EEPROM_ROW_ERASE,
    "byte": EEPROM_BYTE_ERASE,
})


@dataclass(frozen=True)
class TalkerVariant:
    """Opcode table and echo behaviour of one talker firmware."""
    name: str
    read_cmd: int
    write_cmd: int
    command_echo: EchoPolicy
    read_ack: bool                      # host acknowledges every read byte
    write_echo: Optional[EchoPolicy]    # None: talker answers nothing on write
    prog_cmds: Mapping[MemoryKind, int] = field(default_factory=lambda: MappingProxyType({}))
    enter_test_mode: bool = False       # host must switch to special test mode
    protect_after_write: bool = False   # host sets BPROT again after a normal file write
    talker_file: str = DEFAULT_TALKER_FILE

    def write_opcode(self, kind: MemoryKind = MemoryKind.NORMAL) -> int:
        if kind is MemoryKind.NORMAL:
            return self.write_cmd
        try:
            return self.prog_cmds[kind]
        except KeyError:
            raise ValueError(f"{self.name} talker has no {kind.value} write command") from None

    def programs_natively(self, kind: MemoryKind) -> bool:
        return kind in self.prog_cmds

    @property
    def opcodes(self) -> Tuple[int, ...]:
        return (self.read_cmd, self.write_cmd, *self.prog_cmds.values())

    @property
    def verifies_writes(self) -> bool:
        return self.write_echo in (EchoPolicy.VERIFY_DIRECT, EchoPolicy.VERIFY_COMPLEMENT)


JBUG_VARIANT = TalkerVariant(
    name="jbug",
    read_cmd=0x01,
    write_cmd=0x41,
    command_echo=EchoPolicy.VERIFY_COMPLEMENT,
    read_ack=True,
    write_echo=EchoPolicy.VERIFY_DIRECT,
    enter_test_mode=True,
    protect_after_write=True,
    talker_file="JBug_Talk.s19",
)

TRU11_VARIANT = TalkerVariant(
    name="tru11",
    read_cmd=0x01,
    write_cmd=0x02,
    command_echo=EchoPolicy.VERIFY_DIRECT,
    read_ack=False,
    write_echo=EchoPolicy.IGNORE,
    prog_cmds=MappingProxyType({
        MemoryKind.EEPROM: 0x03,
        MemoryKind.EPROM: 0x04,
        MemoryKind.EPROM_E20: 0x05,
    }),
)

VARIANTS: Mapping[str, TalkerVariant] = MappingProxyType({
    v.name: v for v in (JBUG_VARIANT, TRU11_VARIANT)
})


# ═══════════════════════════════════════════════════════════════════════
# SECTION 2 — ERRORS
# ═══════════════════════════════════════════════════════════════════════

ERROR_MESSAGES: Mapping[str, str] = MappingProxyType({
    "transfer_shortfall": "{operation} failed: requested {requested} bytes, transferred {transferred}",
    "echo_mismatch": "Echo mismatch at byte {index}: sent 0x{sent:02X}, received 0x{received:02X} ({policy} echo)",
    "image_too_large": "Talker image {path} exceeds {limit} bytes",
    "srecord": "S-record line {line_no}: {reason}",
    "file": "{path}: {reason}",
    "transport": "{reason}",
})

EXIT_CODES: Mapping[str, int] = MappingProxyType({
    "transfer_shortfall": 2,
    "echo_mismatch": 3,
    "image_too_large": 4,
    "srecord": 5,
    "file": 6,
    "transport": 7,
})


class TalkerError(Exception):
    """Base for protocol, file and transport failures. Carries an exit code."""

    kind = ""

    def __init__(self, **fields):
        self.fields = fields
        super().__init__(ERROR_MESSAGES[self.kind].format(**fields))

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.kind, 1)


class TransferShortfall(TalkerError):
    """The transport moved fewer bytes than requested (includes timeouts)."""

    kind = "transfer_shortfall"

    def __init__(self, operation: str, requested: int, transferred: int):
        self.operation = operation
        self.requested = requested
        self.transferred = transferred
        super().__init__(operation=operation, requested=requested, transferred=transferred)


class EchoMismatch(TalkerError):
    """A direct or complement echo check failed."""

    kind = "echo_mismatch"

    def __init__(self, index: int, sent: int, received: int, policy: EchoPolicy):
        self.index = index
        self.sent = sent
        self.received = received
        self.policy = policy
        super().__init__(index=index, sent=sent, received=received, policy=policy.value)


class ImageTooLarge(TalkerError):
    kind = "image_too_large"

    def __init__(self, path, limit: int = BOOTLOADER_MAX_BYTE_COUNT):
        self.path = str(path)
        self.limit = limit
        super().__init__(path=self.path, limit=limit)


class SRecordError(TalkerError):
    kind = "srecord"

    def __init__(self, line_no: int, reason: str):
        self.line_no = line_no
        self.reason = reason
        super().__init__(line_no=line_no, reason=reason)


class TalkerFileError(TalkerError):
    """A file could not be opened, read or written."""

    kind = "file"

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(path=self.path, reason=reason)


class TransportError(TalkerError):
    """Raised when transport fails."""

    kind = "transport"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason=reason)


# ═══════════════════════════════════════════════════════════════════════
# SECTION 3 — SESSION CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TalkerConfig:
    """Settings for one invocation. Never changed once a session starts."""
    port: str = DEFAULT_PORT
    transport: str = "pyserial"
    device_index: int = 0
    variant: str = DEFAULT_VARIANT
    use_fast: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    tx_chunk_size: int = DEFAULT_CHUNK_SIZE
    rx_chunk_size: int = DEFAULT_CHUNK_SIZE
    prog_tx_chunk_size: int = DEFAULT_PROG_CHUNK_SIZE
    srec_datalen: int = DEFAULT_SREC_DATALEN
    verify_config: bool = False
    validate_checksum: bool = False
    talker_file: Optional[str] = None     # None: the variant's own talker
    prog_delay_ms: int = DEFAULT_PROG_DELAY_MS
    settle_delay_ms: int = SETTLE_DELAY_MS

    def __post_init__(self):
        for name in ("tx_chunk_size", "rx_chunk_size", "prog_tx_chunk_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if not 1 <= self.srec_datalen <= SREC_MAX_DATA:
            raise ValueError(f"srec_datalen must be 1..{SREC_MAX_DATA}")
        if self.timeout_ms < 0 or self.prog_delay_ms < 0 or self.settle_delay_ms < 0:
            raise ValueError("delays and timeouts cannot be negative")
        if self.variant not in VARIANTS:
            raise ValueError(f"unknown talker variant {self.variant!r}")

    @property
    def boot_baud(self) -> int:
        return BOOT_BAUD_FAST if self.use_fast else BOOT_BAUD_SLOW

    @property
    def talker_variant(self) -> TalkerVariant:
        return VARIANTS[self.variant]

    @property
    def talker_path(self) -> str:
        return self.talker_file or self.talker_variant.talker_file


def _parse_uint(text: str, bits: int) -> int:
    value = int(str(text).strip(), 0)
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{text!r} does not fit in {bits} bits")
    return value


def parse_u8(text: str) -> int:
    """Parse a decimal or 0x-prefixed byte."""
    return _parse_uint(text, 8)


def parse_u16(text: str) -> int:
    """Parse a decimal or 0x-prefixed 16-bit value (addresses)."""
    return _parse_uint(text, 16)


def parse_u32(text: str) -> int:
    return _parse_uint(text, 32)


def parse_hex_string(text: str) -> bytes:
    """Decode an inline hex payload. An odd digit count gets a leading 0."""
    digits = "".join(text.split())
    if digits[:2].lower() == "0x":
        digits = digits[2:]
    if not digits:
        raise ValueError("empty hex string")
    if len(digits) % 2:
        digits = "0" + digits
    try:
        return bytes.fromhex(digits)
    except ValueError:
        raise ValueError(f"invalid hex string {text!r}") from None


# ═══════════════════════════════════════════════════════════════════════
# SECTION 4 — MOTOROLA S-RECORD CODEC
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SRecord:
    """One parsed S-record line."""
    kind: str
    address: int
    data: bytes = b""
    checksum: Optional[int] = None


def compute_checksum(count: int, address: int, data: bytes) -> int:
    """One's complement of the low byte of count + address bytes + data."""
    total = count + ((address >> 8) & 0xFF) + (address & 0xFF) + sum(data)
    return 0xFF - (total & 0xFF)


def format_s0() -> str:
    return SREC_HEADER


def format_s9() -> str:
    return SREC_TERMINATOR


def format_s1(address: int, data: bytes) -> str:
    if not 0 <= address <= 0xFFFF:
        raise ValueError(f"S1 address out of range: {address:#x}")
    if len(data) > SREC_MAX_DATA:
        raise ValueError(f"S1 record holds at most {SREC_MAX_DATA} bytes, got {len(data)}")
    data = bytes(data)
    count = len(data) + SREC_ADDR_CHECKSUM_COUNT
    checksum = compute_checksum(count, address, data)
    return f"S1{count:02X}{address:04X}{data.hex().upper()}{checksum:02X}\r\n"


def parse_line(
    text: str,
    accept: Tuple[str, ...] = ("S1",),
    validate_checksum: bool = False,
    line_no: int = 0,
) -> Optional[SRecord]:
    """
    Parse one S-record line.

    Returns ``None`` for lines shorter than 8 characters and for record types
    not listed in *accept*. The trailing checksum is only checked when
    *validate_checksum* is set.

    Raises:
        SRecordError: malformed hex, or a line too short for its byte count.
    """
    line = text.rstrip("\r\n")
    if len(line) < SREC_MIN_LINE_LEN:
        return None
    kind = line[:2]
    if kind not in accept:
        return None

    try:
        count = int(line[2:4], 16)
        address = int(line[4:8], 16)
    except ValueError:
        raise SRecordError(line_no, f"bad hex in record header {line[:8]!r}") from None
    if count < SREC_ADDR_CHECKSUM_COUNT:
        raise SRecordError(line_no, f"byte count {count} is shorter than address + checksum")

    datalen = count - SREC_ADDR_CHECKSUM_COUNT
    end = SREC_MIN_LINE_LEN + 2 * datalen
    if len(line) < end:
        raise SRecordError(line_no, f"declares {datalen} data bytes but the line is truncated")
    try:
        data = bytes.fromhex(line[SREC_MIN_LINE_LEN:end])
    except ValueError:
        raise SRecordError(line_no, "bad hex in data field") from None

    checksum_text = line[end:end + 2]
    checksum = None
    if len(checksum_text) == 2 and all(c in "0123456789abcdefABCDEF" for c in checksum_text):
        checksum = int(checksum_text, 16)

    if validate_checksum:
        expected = compute_checksum(count, address, data)
        if checksum is None:
            raise SRecordError(line_no, "missing checksum")
        if checksum != expected:
            raise SRecordError(line_no, f"checksum 0x{checksum:02X} != expected 0x{expected:02X}")

    return SRecord(kind, address, data, checksum)


def load_records(path, validate_checksum: bool = False) -> List[SRecord]:
    """Read every S1 record of an S-record file, in file order."""
    try:
        text = Path(path).read_text(encoding="ascii")
    except FileNotFoundError:
        raise TalkerFileError(path, "file not found") from None
    except (OSError, UnicodeDecodeError) as e:
        raise TalkerFileError(path, str(e)) from e

    records = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        rec = parse_line(line, validate_checksum=validate_checksum, line_no=line_no)
        if rec is not None:
            records.append(rec)
    log.debug("Loaded %d S1 records from %s", len(records), path)
    return records


def format_dump_line(address: int, data: bytes) -> str:
    return f"{address & 0xFFFF:04X}:{bytes(data).hex().upper()}"


class SRecordWriter:
    """
    Running S-record encoder.

    Writes the S0 header on construction, one S1 line per *datalen*
    contiguous bytes, and the S9 terminator on ``close()``. The stream must
    be opened with ``newline=""`` so CRLF survives on every platform.
    """

    def __init__(self, stream: TextIO, datalen: int = DEFAULT_SREC_DATALEN):
        if not 1 <= datalen <= SREC_MAX_DATA:
            raise ValueError(f"datalen must be 1..{SREC_MAX_DATA}")
        self.stream = stream
        self.datalen = datalen
        self.lines_written = 0
        self._address = 0
        self._buf = bytearray()
        self.stream.write(format_s0())

    def write_byte(self, address: int, value: int) -> None:
        address &= 0xFFFF
        if self._buf and (self._address + len(self._buf)) & 0xFFFF != address:
            self.flush()
        if not self._buf:
            self._address = address
        self._buf.append(value)
        if len(self._buf) == self.datalen:
            self.flush()

    def write(self, address: int, data: bytes) -> None:
        for i, value in enumerate(data):
            self.write_byte(address + i, value)

    def flush(self) -> None:
        if self._buf:
            self.stream.write(format_s1(self._address, self._buf))
            self.lines_written += 1
            self._buf = bytearray()

    def close(self) -> None:
        self.flush()
        self.stream.write(format_s9())


# ═══════════════════════════════════════════════════════════════════════
# SECTION 5 — TRANSPORT LAYER (Serial / D2XX / Virtual HC11)
# ═══════════════════════════════════════════════════════════════════════

class BaseTransport:
    """Abstract base for all serial transports."""

    def open(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def configure(self, baud: int, bytesize: int = 8, parity: str = "N",
                  stopbits: int = 1, rtscts: bool = False) -> None:
        raise NotImplementedError

    def set_timeout(self, timeout_ms: int) -> None:
        raise NotImplementedError

    def purge(self) -> None:
        """Discard anything buffered in either direction."""
        raise NotImplementedError

    def read(self, count: int) -> bytes:
        """Read up to *count* bytes, returning early only on timeout."""
        raise NotImplementedError

    def write(self, data: bytes) -> int:
        raise NotImplementedError

    @property
    def is_open(self) -> bool:
        raise NotImplementedError


class PySerialTransport(BaseTransport):
    """PySerial (COM port / tty) transport."""

    def __init__(self, port: str, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.port = port
        self.baud = TALKER_BAUD
        self.timeout_ms = timeout_ms
        self._serial: Optional[serial.Serial] = None

    def open(self) -> None:
        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout_ms / 1000.0,
                write_timeout=self.timeout_ms / 1000.0,
            )
            log.info("Opened %s at %d baud", self.port, self.baud)
        except serial.SerialException as e:
            raise TransportError(f"Failed to open {self.port}: {e}") from e

    def close(self) -> None:
        if self._serial and self._serial.is_open:
            self._serial.close()
            log.info("Closed %s", self.port)

    def _require_open(self) -> serial.Serial:
        if not self._serial or not self._serial.is_open:
            raise TransportError("Port not open")
        return self._serial

    def configure(self, baud: int, bytesize: int = 8, parity: str = "N",
                  stopbits: int = 1, rtscts: bool = False) -> None:
        port = self._require_open()
        try:
            port.baudrate = baud
            port.bytesize = bytesize
            port.parity = parity
            port.stopbits = stopbits
            port.rtscts = rtscts
        except (serial.SerialException, ValueError) as e:
            raise TransportError(f"Failed to configure {self.port} for {baud} baud: {e}") from e
        self.baud = baud
        log.info("%s set to %d %d%s%d", self.port, baud, bytesize, parity, stopbits)

    def set_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        if self._serial:
            self._serial.timeout = timeout_ms / 1000.0
            self._serial.write_timeout = timeout_ms / 1000.0

    def purge(self) -> None:
        port = self._require_open()
        port.reset_input_buffer()
        port.reset_output_buffer()

    def write(self, data: bytes) -> int:
        port = self._require_open()
        try:
            return port.write(data)
        except serial.SerialTimeoutException as e:
            raise TransportError(f"Write timeout on {self.port}: {e}") from e

    def read(self, count: int) -> bytes:
        return bytes(self._require_open().read(count))

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @staticmethod
    def list_ports() -> List[Tuple[str, str]]:
        """List available serial ports as (device, description) pairs."""
        return [(p.device, p.description) for p in serial.tools.list_ports.comports()]


class D2XXTransport(BaseTransport):
    """FTDI D2XX direct USB transport (lower latency)."""

    def __init__(self, device_index: int = 0, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.device_index = device_index
        self.baud = TALKER_BAUD
        self.timeout_ms = timeout_ms
        self._device = None

    def open(self) -> None:
        if not D2XX_AVAILABLE:
            raise TransportError("ftd2xx not installed (pip install ftd2xx)")
        try:
            self._device = ftd2xx.open(self.device_index)
            self._device.setTimeouts(self.timeout_ms, self.timeout_ms)
            self._device.setLatencyTimer(2)
            log.info("Opened FTDI D2XX device %d", self.device_index)
        except Exception as e:
            raise TransportError(f"Failed to open D2XX device {self.device_index}: {e}") from e
        self.configure(self.baud)

    def close(self) -> None:
        if self._device:
            self._device.close()
            self._device = None
            log.info("Closed D2XX device %d", self.device_index)

    def _require_open(self):
        if not self._device:
            raise TransportError("D2XX device not open")
        return self._device

    def configure(self, baud: int, bytesize: int = 8, parity: str = "N",
                  stopbits: int = 1, rtscts: bool = False) -> None:
        dev = self._require_open()
        defines = ftd2xx.defines
        parities = {"N": defines.PARITY_NONE, "E": defines.PARITY_EVEN, "O": defines.PARITY_ODD}
        try:
            dev.setBaudRate(baud)
            dev.setDataCharacteristics(
                defines.BITS_8 if bytesize == 8 else defines.BITS_7,
                defines.STOP_BITS_1 if stopbits == 1 else defines.STOP_BITS_2,
                parities[parity],
            )
            dev.setFlowControl(defines.FLOW_RTS_CTS if rtscts else defines.FLOW_NONE, 0, 0)
        except Exception as e:
            raise TransportError(f"Failed to configure D2XX device for {baud} baud: {e}") from e
        self.baud = baud
        log.info("D2XX device %d set to %d %d%s%d", self.device_index, baud, bytesize, parity, stopbits)

    def set_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        if self._device:
            self._device.setTimeouts(timeout_ms, timeout_ms)

    def purge(self) -> None:
        self._require_open().purge(ftd2xx.defines.PURGE_RX | ftd2xx.defines.PURGE_TX)

    def write(self, data: bytes) -> int:
        return self._require_open().write(bytes(data))

    def read(self, count: int) -> bytes:
        return bytes(self._require_open().read(count))

    @property
    def is_open(self) -> bool:
        return self._device is not None


class VirtualTalkerTransport(BaseTransport):
    """
    In-memory 68HC11 for testing without hardware.

    Simulates the bootstrap ROM (0xFF sync at a boot baud rate, then 256
    echoed image bytes) followed by a talker of the given *variant* serving
    64 KB of memory at 9600 baud. Model details:

    - The register block, BPROT, PPROG and EPROG behave like the real ones
      for the sequences this tool issues. EEPROM and CONFIG only change
      through the programming state machines, and only while BPROT is clear.
    - A programmed CONFIG value stays invisible until ``reset()``.
    - Bulk erase latched at CONFIG erases CONFIG; latched anywhere else it
      erases the whole EEPROM array.
    - Fault injection: *drop_last_echo* loses the final bootstrap echo the
      way some USB adapters do, *drop_echo_at* / *corrupt_echo_at* damage the
      bootstrap echo of one image byte.

    The tallies ``commands``, ``writes`` and ``baud_log`` record what the host
    sent.
    """

    def __init__(
        self,
        variant: TalkerVariant = JBUG_VARIANT,
        booted: bool = False,
        drop_last_echo: bool = False,
        drop_echo_at: Optional[int] = None,
        corrupt_echo_at: Optional[int] = None,
    ):
        self.variant = variant
        self.drop_last_echo = drop_last_echo
        self.drop_echo_at = drop_echo_at
        self.corrupt_echo_at = corrupt_echo_at

        self.memory = bytearray(b"\xFF" * 0x10000)
        self.memory[0x0000:0x0200] = bytes(0x200)       # RAM
        self.memory[0x1000:0x1040] = bytes(0x40)        # register block
        self.memory[REG_CONFIG] = 0x0F
        self.memory[REG_BPROT] = BPROT_ALL
        self.config_next = self.memory[REG_CONFIG]

        self.baud: Optional[int] = None
        self.timeout_ms = DEFAULT_TIMEOUT_MS
        self.image = bytearray()
        self.commands: List[int] = []
        self.writes: List[bytes] = []
        self.baud_log: List[int] = []

        self._rx = bytearray()
        self._opened = False
        self._state = "reset"
        self._cmd = 0
        self._params = bytearray()
        self._addr = 0
        self._remaining = 0
        self._latch_reg: Optional[int] = None
        self._latched: Optional[Tuple[int, int]] = None

        if booted:
            self.baud = TALKER_BAUD
            self._start_talker()

    # ── BaseTransport ──

    def open(self) -> None:
        self._opened = True
        log.info("Virtual %s talker transport opened (simulation mode)", self.variant.name)

    def close(self) -> None:
        self._opened = False

    def configure(self, baud: int, bytesize: int = 8, parity: str = "N",
                  stopbits: int = 1, rtscts: bool = False) -> None:
        self.baud = baud
        self.baud_log.append(baud)

    def set_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms

    def purge(self) -> None:
        self._rx.clear()

    def write(self, data: bytes) -> int:
        if not self._opened:
            raise TransportError("Virtual transport not open")
        data = bytes(data)
        self.writes.append(data)
        for byte in data:
            self._feed(byte)
        return len(data)

    def read(self, count: int) -> bytes:
        if not self._opened:
            raise TransportError("Virtual transport not open")
        result = bytes(self._rx[:count])
        del self._rx[:count]
        return result

    @property
    def is_open(self) -> bool:
        return self._opened

    # ── MCU model ──

    def reset(self) -> None:
        """Reset into bootstrap mode. Latches a programmed CONFIG value."""
        self.memory[REG_CONFIG] = self.config_next
        self.memory[REG_BPROT] = BPROT_ALL
        self.memory[REG_HPRIO] = 0x00
        self.memory[REG_PPROG] = 0x00
        self.memory[REG_EPROG] = 0x00
        self.image.clear()
        self._rx.clear()
        self._state = "reset"

    @property
    def booted(self) -> bool:
        return self._state not in ("reset", "boot")

    def _start_talker(self) -> None:
        self.memory[0:len(self.image)] = self.image
        if not self.variant.enter_test_mode:
            # Tru11 talker sets special test mode and clears BPROT itself
            self.memory[REG_HPRIO] = HPRIO_SPECIAL_TEST
            self.memory[REG_BPROT] = BPROT_CLEAR
        self._state = "command"

    def _feed(self, byte: int) -> None:
        if self._state == "reset":
            if byte == BOOT_SYNC_BYTE and self.baud in (BOOT_BAUD_SLOW, BOOT_BAUD_FAST):
                self._state = "boot"
            return
        if self._state == "boot":
            self._boot_byte(byte)
            return
        if self.baud != TALKER_BAUD:
            return  # garbled at the wrong baud rate

        if self._state == "command":
            self._command_byte(byte)
        elif self._state == "params":
            self._params.append(byte)
            if len(self._params) == 3:
                self._start_payload()
        elif self._state == "read_ack":
            self._remaining -= 1
            if self._remaining:
                self._addr = (self._addr + 1) & 0xFFFF
                self._rx.append(self.memory[self._addr])
            else:
                self._state = "command"
        elif self._state == "write":
            reread = self._apply_write(self._addr, byte)
            if self.variant.write_echo is not None:
                self._rx.append(reread)
            self._addr = (self._addr + 1) & 0xFFFF
            self._remaining -= 1
            if not self._remaining:
                self._state = "command"

    def _boot_byte(self, byte: int) -> None:
        index = len(self.image)
        self.image.append(byte)
        last = index == BOOTLOADER_MAX_BYTE_COUNT - 1
        if index == self.drop_echo_at or (last and self.drop_last_echo):
            pass
        elif index == self.corrupt_echo_at:
            self._rx.append(byte ^ 0xFF)
        else:
            self._rx.append(byte)
        if last:
            self._start_talker()

    def _command_byte(self, byte: int) -> None:
        # JBug complements and echoes every byte before dispatching it
        complement = self.variant.command_echo is EchoPolicy.VERIFY_COMPLEMENT
        if complement:
            self._rx.append(~byte & 0xFF)
        if byte not in self.variant.opcodes:
            return
        self.commands.append(byte)
        if not complement:
            self._rx.append(byte)
        self._cmd = byte
        self._params = bytearray()
        self._state = "params"

    def _start_payload(self) -> None:
        length = self._params[0] or 256
        self._addr = (self._params[1] << 8) | self._params[2]
        self._remaining = length
        if self._cmd == self.variant.read_cmd:
            if self.variant.read_ack:
                self._rx.append(self.memory[self._addr])
                self._state = "read_ack"
            else:
                for i in range(length):
                    self._rx.append(self.memory[(self._addr + i) & 0xFFFF])
                self._state = "command"
        else:
            self._state = "write"

    @staticmethod
    def _is_eeprom(address: int) -> bool:
        return EEPROM_START <= address <= EEPROM_END

    def _apply_write(self, address: int, value: int) -> int:
        """Store one byte for the current write command. Returns the re-read."""
        kinds = {op: kind for kind, op in self.variant.prog_cmds.items()}
        kind = kinds.get(self._cmd, MemoryKind.NORMAL)
        if kind is MemoryKind.EEPROM:
            if address == REG_CONFIG:
                self._eeprom_erase(address, EEPROM_BULK_ERASE.program)
            else:
                self._eeprom_erase(address, EEPROM_BYTE_ERASE.program)
            self._eeprom_program(address, value)
        elif kind in (MemoryKind.EPROM, MemoryKind.EPROM_E20):
            self.memory[address] &= value
        else:
            return self._store(address, value)
        return self.memory[address]

    def _store(self, address: int, value: int) -> int:
        if address in (REG_PPROG, REG_EPROG):
            self._control(address, value)
        elif self._latch_reg is not None:
            # a latched cell reads back the latched data
            self._latched = (address, value)
            return value
        elif address == REG_CONFIG or self._is_eeprom(address):
            pass    # needs the programming sequence
        else:
            self.memory[address] = value
        return self.memory[address]

    def _control(self, reg: int, value: int) -> None:
        self.memory[reg] = value
        if value == PROG_DISABLE:
            self._latch_reg = None
            self._latched = None
        elif value & 0x01 and self._latch_reg == reg and self._latched is not None:
            address, data = self._latched
            if reg == REG_EPROG or value == EPROM_PROGRAM.program:
                self.memory[address] &= data
            elif value == EEPROM_PROGRAM.program:
                self._eeprom_program(address, data)
            else:
                self._eeprom_erase(address, value)
        else:
            self._latch_reg = reg
            self._latched = None

    def _eeprom_unlocked(self) -> bool:
        return self.memory[REG_BPROT] & BPROT_ALL == 0

    def _eeprom_program(self, address: int, data: int) -> None:
        if not self._eeprom_unlocked():
            return
        if address == REG_CONFIG:
            self.config_next &= data
        elif self._is_eeprom(address):
            self.memory[address] &= data

    def _eeprom_erase(self, address: int, program_value: int) -> None:
        if not self._eeprom_unlocked():
            return
        if address == REG_CONFIG:
            self.config_next = 0xFF
        elif program_value == EEPROM_BULK_ERASE.program:
            self.memory[EEPROM_START:EEPROM_END + 1] = b"\xFF" * (EEPROM_END - EEPROM_START + 1)
        elif program_value == EEPROM_ROW_ERASE.program and self._is_eeprom(address):
            row = address & ~(EEPROM_ROW_SIZE - 1)
            self.memory[row:row + EEPROM_ROW_SIZE] = b"\xFF" * EEPROM_ROW_SIZE
        elif self._is_eeprom(address):
            self.memory[address] = 0xFF


# ═══════════════════════════════════════════════════════════════════════
# SECTION 6 — CHUNKED I/O ENGINE
# ═══════════════════════════════════════════════════════════════════════

class ChunkedIO:
    """
    Moves byte sequences through a transport in pieces of at most the
    configured chunk size.

    Many USB serial adapters (and OS write buffers) misbehave when a single
    call moves more than a few hundred bytes, so every transfer is split and
    every piece is checked for completeness. A short count is a hard error,
    never a partial success.
    """

    def __init__(self, transport: BaseTransport,
                 tx_chunk_size: int = DEFAULT_CHUNK_SIZE,
                 rx_chunk_size: int = DEFAULT_CHUNK_SIZE):
        if tx_chunk_size < 1 or rx_chunk_size < 1:
            raise ValueError("chunk sizes must be at least 1")
        self.transport = transport
        self.tx_chunk_size = tx_chunk_size
        self.rx_chunk_size = rx_chunk_size

    @classmethod
    def from_config(cls, transport: BaseTransport, config: TalkerConfig) -> "ChunkedIO":
        return cls(transport, config.tx_chunk_size, config.rx_chunk_size)

    @staticmethod
    def verify_echo(sent: bytes, received: bytes, policy: EchoPolicy, offset: int = 0) -> None:
        """Raise EchoMismatch for the first pair that breaks *policy*."""
        if policy is EchoPolicy.IGNORE:
            return
        for i, (tx, rx) in enumerate(zip(sent, received)):
            expected = tx if policy is EchoPolicy.VERIFY_DIRECT else ~tx & 0xFF
            if rx != expected:
                raise EchoMismatch(offset + i, tx, rx, policy)

    def _write_chunk(self, chunk: bytes, operation: str) -> None:
        log.debug("TX [%d]: %s", len(chunk), chunk.hex(" "))
        written = self.transport.write(chunk)
        if written != len(chunk):
            raise TransferShortfall(operation, len(chunk), written)

    def transmit(self, data: bytes, chunk_size: Optional[int] = None) -> None:
        size = chunk_size or self.tx_chunk_size
        data = bytes(data)
        for start in range(0, len(data), size):
            self._write_chunk(data[start:start + size], "transmit")

    def receive(self, length: int, chunk_size: Optional[int] = None) -> bytes:
        size = chunk_size or self.rx_chunk_size
        out = bytearray()
        remaining = length
        while remaining:
            want = min(remaining, size)
            chunk = self.transport.read(want)
            log.debug("RX [%d/%d]: %s", len(chunk), want, chunk.hex(" "))
            if len(chunk) != want:
                raise TransferShortfall("receive", want, len(chunk))
            out += chunk
            remaining -= want
        return bytes(out)

    def receive_echo(self, sent: bytes, policy: EchoPolicy, offset: int = 0) -> bytes:
        """
        Read back the echo of *sent*, checking each piece as it arrives.

        Bytes that did arrive are checked before a short read is reported, so
        a lost echo byte followed by later ones is an EchoMismatch at the lost
        byte's index. A read that stops short with everything so far correct
        is a TransferShortfall.
        """
        sent = bytes(sent)
        out = bytearray()
        while len(out) < len(sent):
            want = min(len(sent) - len(out), self.rx_chunk_size)
            chunk = self.transport.read(want)
            log.debug("RX [%d/%d]: %s", len(chunk), want, chunk.hex(" "))
            start = len(out)
            self.verify_echo(sent[start:start + len(chunk)], chunk, policy, offset=offset + start)
            out += chunk
            if len(chunk) != want:
                raise TransferShortfall("receive", want, len(chunk))
        return bytes(out)

    def transmit_receive(self, data: bytes, policy: EchoPolicy,
                         chunk_size: Optional[int] = None) -> bytes:
        """
        Write each chunk, read back the same number of bytes and check them
        against *policy*. Returns everything that was read back.
        """
        size = chunk_size or self.tx_chunk_size
        data = bytes(data)
        out = bytearray()
        for start in range(0, len(data), size):
            chunk = data[start:start + size]
            self._write_chunk(chunk, "transmit_receive")
            out += self.receive_echo(chunk, policy, offset=start)
        return bytes(out)


# ═══════════════════════════════════════════════════════════════════════
# SECTION 7 — BOOTSTRAP DOWNLOADER
# ═══════════════════════════════════════════════════════════════════════

class BootstrapLoader:
    """
    Downloads a talker into RAM through the bootstrap ROM.

    Sequence: bootstrap baud → purge → 0xFF sync (no echo) → 256 echoed
    image bytes → settle delay → talker baud. The final echo may be lost by
    USB adapters as the ROM changes speed, so that one byte is checked but
    never fatal.
    """

    def __init__(self, io: ChunkedIO, config: Optional[TalkerConfig] = None):
        self.io = io
        self.config = config or TalkerConfig()

    @staticmethod
    def load_image(path, validate_checksum: bool = False) -> bytearray:
        """
        Concatenate the S1 data of a talker file (record addresses are not
        used) and pad it with 0x00 to the 256 bytes the ROM expects.
        """
        image = bytearray()
        for rec in load_records(path, validate_checksum):
            if len(image) + len(rec.data) > BOOTLOADER_MAX_BYTE_COUNT:
                raise ImageTooLarge(path)
            image += rec.data
        log.info("Talker %s: %d bytes, padded to %d", path, len(image), BOOTLOADER_MAX_BYTE_COUNT)
        image += bytes(BOOTLOADER_MAX_BYTE_COUNT - len(image))
        return image

    def download(self, image: bytes) -> None:
        image = bytes(image)
        size = self.io.tx_chunk_size
        self.io.transmit(bytes([BOOT_SYNC_BYTE]))

        for start in range(0, len(image), size):
            chunk = image[start:start + size]
            if start + len(chunk) < len(image):
                self.io.transmit(chunk)
                self.io.receive_echo(chunk, EchoPolicy.VERIFY_DIRECT, offset=start)
            else:
                self._download_final_chunk(chunk, start)

    def _download_final_chunk(self, chunk: bytes, offset: int) -> None:
        self.io.transmit(chunk)
        body = chunk[:-1]
        if body:
            self.io.receive_echo(body, EchoPolicy.VERIFY_DIRECT, offset=offset)

        error = self._read_last_echo(chunk[-1], offset + len(body))
        if error is not None:
            log.warning("Last bootstrap echo not confirmed, continuing: %s", error)

    def _read_last_echo(self, sent: int, index: int) -> Optional[TalkerError]:
        """Check the final echo, returning the failure instead of raising it."""
        try:
            echo = self.io.receive(1)
            ChunkedIO.verify_echo(bytes([sent]), echo, EchoPolicy.VERIFY_DIRECT, offset=index)
        except (TransferShortfall, EchoMismatch) as e:
            return e
        return None

    def upload(self, path=None) -> bytearray:
        """Load, download and start a talker. Leaves the link at 9600 baud."""
        path = path or self.config.talker_path
        image = self.load_image(path, self.config.validate_checksum)

        transport = self.io.transport
        transport.configure(self.config.boot_baud)
        transport.purge()
        log.info("Downloading talker at %d baud", self.config.boot_baud)
        self.download(image)

        time.sleep(self.config.settle_delay_ms / 1000.0)
        transport.configure(TALKER_BAUD)
        log.info("Talker running, link at %d baud", TALKER_BAUD)
        return image


# ═══════════════════════════════════════════════════════════════════════
# SECTION 8 — TALKER MEMORY ACCESS PROTOCOL
# ═══════════════════════════════════════════════════════════════════════

class TalkerProtocol:
    """
    Command framing for a running talker:

        [command] → echo (complement or direct, per variant)
        [length][addr_hi][addr_lo]           no echo; length 256 is sent as 0
        payload                             read data, or written bytes

    Event callbacks (``on`` / ``emit``): ``log(msg, level)``,
    ``progress(current, total, label)`` and ``dump(line)``.
    """

    def __init__(self, io: ChunkedIO, config: Optional[TalkerConfig] = None,
                 variant: Optional[TalkerVariant] = None):
        self.io = io
        self.config = config or TalkerConfig()
        self.variant = variant or self.config.talker_variant
        self._callbacks: Dict[str, List[Callable]] = {}

    # ── Event System ──

    def on(self, event: str, callback: Callable) -> None:
        """Register an event callback. Events: log, progress, dump."""
        self._callbacks.setdefault(event, []).append(callback)

    def emit(self, event: str, **kwargs) -> None:
        for cb in self._callbacks.get(event, []):
            cb(**kwargs)

    # ── Framing ──

    @staticmethod
    def _check_length(length: int) -> None:
        if not 1 <= length <= TALKER_MAX_BYTE_COUNT:
            raise ValueError(f"talker transfers 1..{TALKER_MAX_BYTE_COUNT} bytes, got {length}")

    def send_command(self, opcode: int) -> None:
        self.io.transmit_receive(bytes([opcode]), self.variant.command_echo)

    def send_params(self, address: int, length: int) -> None:
        self._check_length(length)
        address &= 0xFFFF
        self.io.transmit(bytes([length & 0xFF, address >> 8, address & 0xFF]))

    # ── Memory access ──

    def read_memory(self, address: int, length: int) -> bytes:
        self._check_length(length)
        self.send_command(self.variant.read_cmd)
        self.send_params(address, length)
        if self.variant.read_ack:
            # talker waits for one host byte after every data byte
            data = self.io.transmit_receive(bytes(length), EchoPolicy.IGNORE)
        else:
            data = self.io.receive(length)
        log.debug("Read $%04X [%d]: %s", address & 0xFFFF, length, data.hex(" "))
        return data

    def write_memory(self, address: int, data: bytes,
                     kind: MemoryKind = MemoryKind.NORMAL) -> bytes:
        """
        Write up to 256 bytes and return what the talker answered (the
        re-read memory, or nothing for silent talkers). Verified variants
        raise EchoMismatch when the re-read differs.
        """
        data = bytes(data)
        self._check_length(len(data))
        opcode = self.variant.write_opcode(kind)
        chunk_size = None if kind is MemoryKind.NORMAL else self.config.prog_tx_chunk_size

        self.send_command(opcode)
        self.send_params(address, len(data))
        log.debug("Write $%04X [%d] (%s): %s", address & 0xFFFF, len(data), kind.value, data.hex(" "))
        if self.variant.write_echo is None:
            self.io.transmit(data, chunk_size)
            return b""
        return self.io.transmit_receive(data, self.variant.write_echo, chunk_size)

    def write_byte(self, address: int, value: int) -> None:
        """Single-byte poke."""
        self.write_memory(address, bytes([value & 0xFF]))


# ═══════════════════════════════════════════════════════════════════════
# SECTION 9 — PROGRAMMING STATE MACHINES
# ═══════════════════════════════════════════════════════════════════════

class Programmer:
    """EEPROM / EPROM programming from single-byte pokes."""

    def __init__(self, protocol: TalkerProtocol, prog_delay_ms: Optional[int] = None):
        self.protocol = protocol
        if prog_delay_ms is None:
            prog_delay_ms = protocol.config.prog_delay_ms
        self.prog_delay_ms = prog_delay_ms

    def run_sequence(self, seq: ProgSequence, address: int, value: int = PROG_DUMMY_BYTE) -> None:
        poke = self.protocol.write_byte
        log.debug("%s $%04X <- $%02X", seq.name, address & 0xFFFF, value)
        poke(seq.control_reg, seq.latch)
        poke(address, value)
        poke(seq.control_reg, seq.program)
        if self.prog_delay_ms:
            time.sleep(self.prog_delay_ms / 1000.0)
        poke(seq.control_reg, PROG_DISABLE)

    # Erased EEPROM reads 0xFF; programming can only clear bits.
    def eeprom_program(self, address: int, value: int) -> None:
        self.run_sequence(EEPROM_PROGRAM, address, value)

    def eeprom_bulk_erase(self, address: int, value: int = PROG_DUMMY_BYTE) -> None:
        self.run_sequence(EEPROM_BULK_ERASE, address, value)

    def eeprom_row_erase(self, address: int, value: int = PROG_DUMMY_BYTE) -> None:
        self.run_sequence(EEPROM_ROW_ERASE, address, value)

    def eeprom_byte_erase(self, address: int, value: int = PROG_DUMMY_BYTE) -> None:
        self.run_sequence(EEPROM_BYTE_ERASE, address, value)

    def eprom_program(self, address: int, value: int) -> None:
        self.run_sequence(EPROM_PROGRAM, address, value)

    def eprom_program_e20(self, address: int, value: int) -> None:
        """MC68HC711E20 via EPROG. Needs 12V on VPPE."""
        self.run_sequence(EPROM_PROGRAM_E20, address, value)

    # ── Mode & protection ──

    def special_test_mode(self) -> None:
        self.protocol.write_byte(REG_HPRIO, HPRIO_SPECIAL_TEST)

    def bprot_off(self) -> None:
        """Clear block protect so EEPROM and CONFIG can be erased / programmed."""
        self.protocol.write_byte(REG_BPROT, BPROT_CLEAR)

    def bprot_on(self) -> None:
        self.protocol.write_byte(REG_BPROT, BPROT_ALL)


# ═══════════════════════════════════════════════════════════════════════
# SECTION 10 — MEMORY OPERATIONS (HIGH-LEVEL SEQUENCES)
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class LineTally:
    """Match counts for one S1 line or one written block."""
    address: int
    count: int
    matched: int = 0
    mismatched: int = 0
    ignored: int = 0
    received: bytes = b""

    def describe(self) -> str:
        if self.mismatched and self.ignored:
            return f"{self.mismatched} mismatched, {self.ignored} ignored"
        if self.mismatched:
            return f"{self.mismatched} mismatched"
        if self.ignored == self.count:
            return f"{self.ignored} ignored"
        if self.ignored:
            return f"{self.matched} matched, {self.ignored} ignored"
        return f"{self.matched} matched"


@dataclass
class VerifyTally:
    """Session totals. PASS iff nothing mismatched."""
    lines: List[LineTally] = field(default_factory=list)

    def add(self, line: LineTally) -> LineTally:
        self.lines.append(line)
        return line

    @property
    def total(self) -> int:
        return sum(l.count for l in self.lines)

    @property
    def matched(self) -> int:
        return sum(l.matched for l in self.lines)

    @property
    def mismatched(self) -> int:
        return sum(l.mismatched for l in self.lines)

    @property
    def ignored(self) -> int:
        return sum(l.ignored for l in self.lines)

    @property
    def passed(self) -> bool:
        return self.mismatched == 0

    def summary(self) -> str:
        ignored = f", {self.ignored} ignored" if self.ignored else ""
        if self.mismatched:
            return f"FAILED! {self.total} total bytes, {self.mismatched} mismatched{ignored}"
        return f"PASSED. {self.total} total bytes, {self.matched} matched{ignored}"


def compare_bytes(address: int, expected: bytes, received: bytes,
                  verify_config: bool = False) -> LineTally:
    """Tally *received* against *expected*. CONFIG is ignored unless *verify_config*."""
    line = LineTally(address & 0xFFFF, len(expected), received=bytes(received))
    for i, want in enumerate(expected):
        got = received[i] if i < len(received) else None
        if not verify_config and (address + i) & 0xFFFF == REG_CONFIG:
            line.ignored += 1
        elif got != want:
            line.mismatched += 1
        else:
            line.matched += 1
    return line


class MemoryOps:
    """
    High-level operations: upload, read, verify, write, program, erase.
    Report through the protocol's log / progress / dump events.
    """

    def __init__(self, protocol: TalkerProtocol, programmer: Optional[Programmer] = None):
        self.protocol = protocol
        self.config = protocol.config
        self.programmer = programmer or Programmer(protocol)

    def emit(self, event: str, **kwargs) -> None:
        self.protocol.emit(event, **kwargs)

    def _load(self, path) -> List[SRecord]:
        return load_records(path, self.config.validate_checksum)

    # ── Upload ──

    def upload_talker(self, path=None) -> None:
        loader = BootstrapLoader(self.protocol.io, self.config)
        path = path or self.config.talker_path
        self.emit("log", msg=f"Loading {path}", level="info")
        loader.upload(path)
        if self.protocol.variant.enter_test_mode:
            self.programmer.special_test_mode()
        self.emit("log", msg="Download completed successfully", level="success")

    # ── Read ──

    def read_to_file(self, from_addr: int, to_addr: int, path=None) -> bytes:
        """
        Read [from_addr, to_addr] into an S-record file (if *path*) and the
        hex dump. Each talker read moves at most the receive chunk size.
        """
        if not (0 <= from_addr <= 0xFFFF and 0 <= to_addr <= 0xFFFF):
            raise ValueError("addresses must be 16-bit")
        if to_addr < from_addr:
            raise ValueError(f"to_addr ${to_addr:04X} is below from_addr ${from_addr:04X}")

        total = to_addr - from_addr + 1
        step = min(TALKER_MAX_BYTE_COUNT, self.config.rx_chunk_size)
        datalen = self.config.srec_datalen

        handle = None
        writer = None
        if path is not None:
            try:
                handle = open(path, "w", encoding="ascii", newline="")
            except OSError as e:
                raise TalkerFileError(path, e.strerror or str(e)) from e
            writer = SRecordWriter(handle, datalen)

        data = bytearray()
        pending = bytearray()
        dump_addr = from_addr
        try:
            address = from_addr
            while len(data) < total:
                n = min(step, total - len(data))
                chunk = self.protocol.read_memory(address, n)
                if writer:
                    writer.write(address, chunk)
                data += chunk
                pending += chunk
                while len(pending) >= datalen:
                    self.emit("dump", line=format_dump_line(dump_addr, pending[:datalen]))
                    del pending[:datalen]
                    dump_addr += datalen
                address += n
                self.emit("progress", current=len(data), total=total, label="Reading")
            if pending:
                self.emit("dump", line=format_dump_line(dump_addr, pending))
            if writer:
                writer.close()
        finally:
            if handle:
                handle.close()

        self.emit("log", msg="Read successfully completed", level="success")
        return bytes(data)

    # ── Verify ──

    def verify_file(self, path) -> VerifyTally:
        tally = VerifyTally()
        for rec in self._load(path):
            if not rec.data:
                continue
            received = self.protocol.read_memory(rec.address, len(rec.data))
            line = tally.add(compare_bytes(rec.address, rec.data, received, self.config.verify_config))
            self.emit("log", msg=f"File: {format_dump_line(rec.address, rec.data)}", level="info")
            self.emit("log", msg=f"Rx  : {format_dump_line(rec.address, received)} = {line.describe()}",
                      level="info" if not line.mismatched else "warning")
        self._report(tally)
        return tally

    def _report(self, tally: VerifyTally) -> None:
        self.emit("log", msg=tally.summary(), level="success" if tally.passed else "error")

    # ── Write ──

    def _write_block(self, address: int, data: bytes, kind: MemoryKind) -> LineTally:
        response = self.protocol.write_memory(address, data, kind)
        if self.protocol.variant.verifies_writes:
            # already echo-checked byte for byte
            received = response
        else:
            received = self.protocol.read_memory(address, len(data))
        return compare_bytes(address, data, received, self.config.verify_config)

    def write_hex(self, from_addr: int, hex_text: str,
                  kind: MemoryKind = MemoryKind.NORMAL) -> VerifyTally:
        data = parse_hex_string(hex_text)
        tally = VerifyTally()
        self.emit("log", msg=f"{from_addr:04X}:{data.hex().upper()}", level="info")
        for start in range(0, len(data), TALKER_MAX_BYTE_COUNT):
            block = data[start:start + TALKER_MAX_BYTE_COUNT]
            address = (from_addr + start) & 0xFFFF
            line = tally.add(self._write_block(address, block, kind))
            self.emit("log", msg=f"{format_dump_line(address, block)} = {line.describe()}", level="info")
        self._report(tally)
        return tally

    def write_file(self, path, kind: MemoryKind = MemoryKind.NORMAL) -> VerifyTally:
        records = self._load(path)
        tally = VerifyTally()
        total = sum(len(r.data) for r in records)
        done = 0
        for rec in records:
            if not rec.data:
                continue
            line = tally.add(self._write_block(rec.address, rec.data, kind))
            level = "warning" if line.mismatched else "info"
            self.emit("log", msg=f"{format_dump_line(rec.address, rec.data)} = {line.describe()}", level=level)
            done += len(rec.data)
            self.emit("progress", current=done, total=total, label="Writing")
        if kind is MemoryKind.NORMAL and self.protocol.variant.protect_after_write:
            self.programmer.bprot_on()
        self._report(tally)
        return tally

    # ── Program ──

    def _poke_records(self, records: List[SRecord], kind: MemoryKind) -> None:
        """Program every byte through the PPROG / EPROG state machines."""
        prog = self.programmer
        total = sum(len(r.data) for r in records)
        done = 0
        for rec in records:
            self.emit("log", msg=format_dump_line(rec.address, rec.data), level="info")
            for i, value in enumerate(rec.data):
                address = (rec.address + i) & 0xFFFF
                if kind is MemoryKind.EEPROM:
                    if address == REG_CONFIG:
                        prog.eeprom_bulk_erase(address, value)
                    else:
                        prog.eeprom_byte_erase(address, value)
                    prog.eeprom_program(address, value)
                elif kind is MemoryKind.EPROM:
                    prog.eprom_program(address, value)
                else:
                    prog.eprom_program_e20(address, value)
                done += 1
                self.emit("progress", current=done, total=total, label=f"${address:04X}")

    def program_file(self, path, kind: MemoryKind, verify: bool = True) -> Optional[VerifyTally]:
        """
        Program EEPROM / EPROM from an S-record file.

        Talkers with a native programming opcode get plain block writes.
        Otherwise every byte goes through the poke state machines: EEPROM is
        erased first (bulk erase for CONFIG, byte erase elsewhere) with BPROT
        cleared for the duration. A verify pass follows unless *verify* is off.
        """
        if kind is MemoryKind.NORMAL:
            raise ValueError("program_file needs an EEPROM or EPROM memory kind")
        if self.protocol.variant.programs_natively(kind):
            return self.write_file(path, kind)

        records = self._load(path)
        if kind is MemoryKind.EEPROM:
            self.programmer.bprot_off()
            try:
                self._poke_records(records, kind)
            finally:
                self.programmer.bprot_on()
        else:
            self._poke_records(records, kind)

        if not verify:
            return None
        self.emit("log", msg="Verifying", level="info")
        return self.verify_file(path)

    def erase_eeprom(self, address: int = EEPROM_START, mode: str = "bulk") -> None:
        """Bulk, row (16 bytes) or byte erase at *address*."""
        try:
            seq = ERASE_SEQUENCES[mode]
        except KeyError:
            raise ValueError(f"erase mode must be one of {', '.join(ERASE_SEQUENCES)}") from None
        self.programmer.bprot_off()
        try:
            self.programmer.run_sequence(seq, address)
        finally:
            self.programmer.bprot_on()
        self.emit("log", msg=f"{seq.name} at ${address & 0xFFFF:04X} done", level="success")


# ═══════════════════════════════════════════════════════════════════════
# SECTION 11 — CLI INTERFACE
# ═══════════════════════════════════════════════════════════════════════

PROG_COMMANDS: Mapping[str, MemoryKind] = MappingProxyType({
    "write-ee": MemoryKind.EEPROM,
    "write-e": MemoryKind.EPROM,
    "write-e20": MemoryKind.EPROM_E20,
})

PROG_PROMPTS: Mapping[MemoryKind, str] = MappingProxyType({
    MemoryKind.EEPROM: (
        "EEPROM PROGRAMMING CONFIRMATION:\n"
        "Note, current content will be lost, are you sure you want to write (y/[n])? "
    ),
    MemoryKind.EPROM: (
        "EPROM PROGRAMMING CONFIRMATION:\n"
        "Note, programmed zero bits will become permanent. If yes, apply the\n"
        "programming voltage (12V) on VPPE now. Are you sure you want to write (y/[n])? "
    ),
})


def cli_log_callback(msg: str, level: str = "info") -> None:
    """Print log messages to console."""
    prefix = {"info": "  ", "warning": "⚠ ", "error": "✗ ", "success": "✓ ", "debug": "  "}
    print(f"{prefix.get(level, '  ')}{msg}")

def cli_progress_callback(current: int, total: int, label: str = "") -> None:
    """Print progress to console."""
    if total > 0:
        pct = (current / total) * 100
        bar_len = 40
        filled = int(bar_len * current / total)
        bar = "█" * filled + "░" * (bar_len - filled)
        print(f"\r  {label:<8} [{bar}] {pct:.0f}%", end="", flush=True)
        if current >= total:
            print()

def cli_dump_callback(line: str) -> None:
    print(line)


def confirm_programming(kind: MemoryKind, assume_yes: bool = False) -> bool:
    if assume_yes:
        return True
    prompt = PROG_PROMPTS.get(kind, PROG_PROMPTS[MemoryKind.EPROM])
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower().startswith("y")


def config_from_args(args: argparse.Namespace) -> TalkerConfig:
    return TalkerConfig(
        port=args.port,
        transport=args.transport,
        device_index=args.device_index,
        variant=args.variant,
        use_fast=getattr(args, "fast", False),
        timeout_ms=args.timeout,
        tx_chunk_size=args.chunk_size,
        rx_chunk_size=args.chunk_size,
        prog_tx_chunk_size=args.prog_chunk_size,
        srec_datalen=getattr(args, "datalen", DEFAULT_SREC_DATALEN),
        verify_config=getattr(args, "verify_config", False),
        validate_checksum=getattr(args, "check_srec", False),
        talker_file=getattr(args, "talker", None),
        prog_delay_ms=args.prog_delay,
    )


def create_transport(config: TalkerConfig, booted: bool = True) -> BaseTransport:
    if config.transport == "virtual":
        return VirtualTalkerTransport(config.talker_variant, booted=booted)
    if config.transport == "d2xx":
        return D2XXTransport(config.device_index, config.timeout_ms)
    return PySerialTransport(config.port, config.timeout_ms)


def _exit_for(tally: Optional[VerifyTally]) -> int:
    return 0 if tally is None or tally.passed else 1


def run_cli(args: argparse.Namespace) -> int:
    """Run the CLI interface."""
    print(f"\n{__app_name__} v{__version__}\n")

    if args.command == "ports":
        ports = PySerialTransport.list_ports()
        if ports:
            print("Available ports:")
            for device, description in ports:
                print(f"  {device:<16} {description}")
        else:
            print("No serial ports found")
        return 0

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"✗ {e}")
        return 1

    kind = PROG_COMMANDS.get(args.command)
    if kind is None and args.command == "write-hex":
        kind = MemoryKind(args.kind)
        kind = None if kind is MemoryKind.NORMAL else kind
    if kind is not None and not confirm_programming(kind, args.yes):
        print("Aborted")
        return 1

    transport = create_transport(config, booted=args.command != "uptalker")
    try:
        transport.open()
        transport.set_timeout(config.timeout_ms)
        transport.purge()

        protocol = TalkerProtocol(ChunkedIO.from_config(transport, config), config)
        protocol.on("log", cli_log_callback)
        protocol.on("progress", cli_progress_callback)
        protocol.on("dump", cli_dump_callback)
        ops = MemoryOps(protocol)

        if args.command == "uptalker":
            ops.upload_talker(config.talker_path)
            return 0

        transport.configure(TALKER_BAUD)

        if args.command == "read":
            print("Reading memory")
            ops.read_to_file(args.from_addr, args.to_addr, args.file)
            return 0

        elif args.command == "verify":
            print("Reading & verifying memory")
            return _exit_for(ops.verify_file(args.file))

        elif args.command == "write-hex":
            print(f"Writing {args.kind} memory")
            return _exit_for(ops.write_hex(args.from_addr, args.hex, MemoryKind(args.kind)))

        elif args.command == "write":
            print("Writing & verifying normal memory")
            return _exit_for(ops.write_file(args.file))

        elif args.command in PROG_COMMANDS:
            print(f"Writing {'& verifying ' if args.verify else ''}{kind.value.upper()}")
            tally = ops.program_file(args.file, kind, verify=args.verify)
            if kind is not MemoryKind.EEPROM:
                print("Please remove programming voltage (12V) now before powering off the MCU")
            return _exit_for(tally)

        elif args.command == "erase":
            ops.erase_eeprom(args.addr, args.mode)
            return 0

        else:
            print(f"Unknown command: {args.command}")
            return 1

    except KeyboardInterrupt:
        print("\n\nCancelled by user")
        return 130
    except TalkerError as e:
        print(f"\n✗ Error: {e}")
        log.exception("CLI error")
        return e.exit_code
    except ValueError as e:
        print(f"\n✗ Error: {e}")
        return 1
    finally:
        if transport.is_open:
            transport.close()


# ═══════════════════════════════════════════════════════════════════════
# SECTION 12 — ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hc11-talker",
        description=f"{__app_name__} v{__version__} — 68HC11 bootstrap talker read/verify/program tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s uptalker -p /dev/ttyUSB0 --talker talker.s19     # Download talker (reset MCU in bootstrap mode first)
  %(prog)s read -p /dev/ttyUSB0 --from 0xB600 --to 0xB7FF --file ee.s19
  %(prog)s verify -p /dev/ttyUSB0 --file ee.s19             # Compare memory with a file
  %(prog)s write-hex -p /dev/ttyUSB0 --from 0x103F --hex 0F  # Inline hex write
  %(prog)s write -p /dev/ttyUSB0 --file ram.s19             # Write & verify normal memory
  %(prog)s write-ee -p /dev/ttyUSB0 --file ee.s19           # Erase + program EEPROM
  %(prog)s write-e20 -p /dev/ttyUSB0 --file prog.s19        # Program MC68HC711E20 EPROM (12V)
  %(prog)s erase -p /dev/ttyUSB0 --mode bulk                # Bulk erase EEPROM
  %(prog)s ports                                             # List serial ports
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Upload talker
    up_p = subparsers.add_parser("uptalker", help="Download the talker through the bootstrap ROM")
    up_p.add_argument("--talker", "-t", default=None,
                      help="Talker S-record file (default: "
                           + ", ".join(f"{v.talker_file} for {v.name}" for v in VARIANTS.values()) + ")")
    up_p.add_argument("--fast", action="store_true",
                      help=f"Bootstrap at {BOOT_BAUD_FAST} baud instead of {BOOT_BAUD_SLOW}")

    # Read
    read_p = subparsers.add_parser("read", help="Read a memory range (hex dump, optional S-record file)")
    read_p.add_argument("--from", dest="from_addr", type=parse_u16, required=True, help="First address")
    read_p.add_argument("--to", dest="to_addr", type=parse_u16, required=True, help="Last address (inclusive)")
    read_p.add_argument("--file", "-f", help="Output S-record file")
    read_p.add_argument("--datalen", type=parse_u8, default=DEFAULT_SREC_DATALEN,
                        help=f"Data bytes per S1 line (default: {DEFAULT_SREC_DATALEN})")

    # Verify
    verify_p = subparsers.add_parser("verify", help="Compare memory against an S-record file")
    verify_p.add_argument("--file", "-f", required=True, help="S-record file")

    # Write hex
    hex_p = subparsers.add_parser("write-hex", help="Write an inline hex string")
    hex_p.add_argument("--from", dest="from_addr", type=parse_u16, required=True, help="Start address")
    hex_p.add_argument("--hex", required=True, help="Hex bytes, e.g. 0F or DEADBEEF")
    hex_p.add_argument("--kind", choices=[k.value for k in MemoryKind], default=MemoryKind.NORMAL.value,
                       help="Memory technology (native talker opcodes only; default: normal)")

    # Write file
    write_p = subparsers.add_parser("write", help="Write & verify normal memory from an S-record file")
    write_p.add_argument("--file", "-f", required=True, help="S-record file")

    # Programming
    prog_parsers = []
    for name, help_text in (
        ("write-ee", "Erase & program EEPROM from an S-record file"),
        ("write-e", "Program EPROM (PPROG) from an S-record file"),
        ("write-e20", "Program MC68HC711E20 EPROM (EPROG, 12V) from an S-record file"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--file", "-f", required=True, help="S-record file")
        p.add_argument("--verify", dest="verify", action="store_true", default=True,
                       help="Verify after programming (default: on)")
        p.add_argument("--no-verify", dest="verify", action="store_false",
                       help="Skip the verify pass")
        prog_parsers.append(p)

    # Erase
    erase_p = subparsers.add_parser("erase", help="Erase EEPROM (bulk, row or byte)")
    erase_p.add_argument("--addr", type=parse_u16, default=EEPROM_START,
                         help=f"Address inside the row / byte to erase (default: 0x{EEPROM_START:04X})")
    erase_p.add_argument("--mode", choices=list(ERASE_SEQUENCES), default="bulk", help="Erase mode (default: bulk)")

    # Ports
    ports_p = subparsers.add_parser("ports", help="List available serial ports")

    # S-record options
    for sub in [up_p, verify_p, write_p, *prog_parsers]:
        sub.add_argument("--check-srec", action="store_true", help="Reject S-records with bad checksums")
    for sub in [verify_p, hex_p, write_p, *prog_parsers]:
        sub.add_argument("--verify-config", action="store_true",
                         help=f"Also compare CONFIG (${REG_CONFIG:04X}), normally unreadable until reset")

    # Global options
    for sub in [up_p, read_p, verify_p, hex_p, write_p, erase_p, *prog_parsers]:
        sub.add_argument("--port", "-p", default=DEFAULT_PORT, help=f"Serial port (default: {DEFAULT_PORT})")
        sub.add_argument("--transport", choices=["pyserial", "d2xx", "virtual"],
                         default="pyserial", help="Transport type (virtual = simulated MCU)")
        sub.add_argument("--device-index", type=parse_u8, default=0, help="FTDI device index (for D2XX)")
        sub.add_argument("--variant", choices=list(VARIANTS), default=DEFAULT_VARIANT,
                         help=f"Talker firmware (default: {DEFAULT_VARIANT})")
        sub.add_argument("--timeout", type=parse_u32, default=DEFAULT_TIMEOUT_MS,
                         help=f"Timeout in ms (default: {DEFAULT_TIMEOUT_MS})")
        sub.add_argument("--chunk-size", type=parse_u32, default=DEFAULT_CHUNK_SIZE,
                         help=f"Bytes per transport read/write (default: {DEFAULT_CHUNK_SIZE})")
        sub.add_argument("--prog-chunk-size", type=parse_u32, default=DEFAULT_PROG_CHUNK_SIZE,
                         help=f"Bytes per transport write while programming (default: {DEFAULT_PROG_CHUNK_SIZE})")
        sub.add_argument("--prog-delay", type=parse_u32, default=DEFAULT_PROG_DELAY_MS,
                         help=f"Delay between program and disable steps in ms (default: {DEFAULT_PROG_DELAY_MS})")
        sub.add_argument("--yes", "-y", action="store_true", help="Do not ask before EEPROM/EPROM programming")

    for sub in [up_p, read_p, verify_p, hex_p, write_p, erase_p, ports_p, *prog_parsers]:
        sub.add_argument("--verbose", "-v", action="store_true", help="Show INFO logging on the console")
        sub.add_argument("--log-dir", type=Path, default=None, help="Log directory (default: ~/.hc11_talker/logs)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(
        console_level=logging.INFO if args.verbose else logging.WARNING,
        log_dir=args.log_dir,
    )
    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
