"""Protocol message kinds, reading of messages and their validation."""

from __future__ import annotations

import enum
import re
from typing import Any

from approxgame.common import FatalError

_POINT = r"[0-9]+"
_RATIONAL = r"[-+]?[0-9]+(?:\.[0-9]{0,7})?"

_HELLO_RE = re.compile(r"HELLO [a-zA-Z0-9]+\r\n", re.ASCII)
_PUT_RE = re.compile(rf"PUT {_POINT} {_RATIONAL}\r\n", re.ASCII)
_BAD_PUT_RE = re.compile(rf"BAD_PUT {_POINT} {_RATIONAL}\r\n", re.ASCII)
_STATE_RE = re.compile(rf"STATE(?: {_RATIONAL})+\r\n", re.ASCII)
_COEFF_RE = re.compile(rf"COEFF(?:\s{_RATIONAL})*\r\n", re.ASCII)
_PLAYER_PUT_RE = re.compile(rf"{_POINT}\s{_RATIONAL}\n", re.ASCII)


class Message(enum.IntEnum):
    """The last message exchanged with a client."""

    NONE = 0
    HELLO = 1
    COEFF = 2
    PUT = 3
    BAD_PUT = 4
    STATE = 5
    PENALTY = 6


def split(text: str, delimiter: str) -> list[str]:
    """Split text on delimiter; a trailing delimiter yields no empty last token."""
    if text == "":
        return []
    parts = text.split(delimiter)
    if parts[-1] == "":
        parts.pop()
    return parts


def _read_byte(stream: Any) -> bytes:
    try:
        chunk = stream.recv(1) if hasattr(stream, "recv") else stream.read(1)
    except OSError as exc:
        raise FatalError(f"read ({exc.errno}; {exc.strerror})") from exc
    if isinstance(chunk, str):
        return chunk.encode()
    return chunk or b""


def read_message(stream: Any, line_mode: bool = False) -> str:
    """Read one message ending in "\\r\\n" (or "\\n" in line mode), terminator included.

    At end of input whatever was read so far is returned, possibly "".
    """
    buf = bytearray()
    while True:
        byte = _read_byte(stream)
        if not byte:
            break
        if byte == b"\n" and (line_mode or buf.endswith(b"\r")):
            buf += byte
            break
        buf += byte
    return buf.decode("utf-8", errors="replace")


def is_hello(msg: str) -> bool:
    """True if msg is a well-formed HELLO message."""
    return _HELLO_RE.fullmatch(msg) is not None


def is_put(msg: str) -> bool:
    """True if msg is a well-formed PUT message."""
    return _PUT_RE.fullmatch(msg) is not None


def is_bad_put(msg: str) -> bool:
    """True if msg is a well-formed BAD_PUT message."""
    return _BAD_PUT_RE.fullmatch(msg) is not None


def is_state(msg: str) -> bool:
    """True if msg is a well-formed STATE message."""
    return _STATE_RE.fullmatch(msg) is not None


def is_coeff(msg: str) -> bool:
    """True if msg is a well-formed COEFF message."""
    return _COEFF_RE.fullmatch(msg) is not None


def is_player_put(msg: str) -> bool:
    """True if msg is a valid "<point> <value>\\n" line typed by a player."""
    return _PLAYER_PUT_RE.fullmatch(msg) is not None