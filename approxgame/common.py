"""Shared helpers: error types, port parsing, socket I/O and polynomial evaluation."""

from __future__ import annotations

import io
import ipaddress
import re
import socket
from collections.abc import Iterable
from typing import Any

CLIENT_USAGE = "usage: -u <player_id> -p <port> -s <server> -4 -6 -a"
SERVER_USAGE = "usage: -p <port> -k <value> -n <value> -m <value> -f <file>"

_PORT_MAX = 65535
_PORT_RE = re.compile(r"\s*([+-]?)([0-9]+)", re.ASCII)


class FatalError(Exception):
    """An error after which the program cannot go on."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class UsageError(FatalError):
    """The command line arguments are wrong."""


def _system_error(what: str, exc: OSError) -> FatalError:
    if exc.errno is not None:
        return FatalError(f"{what} ({exc.errno}; {exc.strerror})")
    return FatalError(f"{what} ({exc})")


def read_port(text: str) -> int:
    """Parse a decimal port number, raising FatalError if it is not valid."""
    if text == "":
        return 0
    match = _PORT_RE.fullmatch(text)
    if match is None:
        raise FatalError(f"{text} is not a valid port number")
    sign, digits = match.groups()
    value = int(digits)
    if sign == "-" and value != 0:
        raise FatalError(f"{text} is not a valid port number")
    if value > _PORT_MAX:
        raise FatalError(f"{text} is not a valid port number")
    return value


def connect_to_server(host: str, port: str | int, family: int = socket.AF_UNSPEC) -> socket.socket:
    """Return a TCP socket connected to host:port using the given address family."""
    try:
        results = socket.getaddrinfo(
            host, port, family, socket.SOCK_STREAM, socket.IPPROTO_TCP
        )
    except socket.gaierror as exc:
        raise FatalError(f"getaddrinfo: {exc.strerror}") from exc
    if not results:
        raise FatalError("getaddrinfo: no address found")
    addr_family, sock_type, proto, _, address = results[0]
    try:
        sock = socket.socket(addr_family, sock_type, proto)
    except OSError as exc:
        raise _system_error("cannot create a socket", exc) from exc
    try:
        sock.connect(address)
    except OSError as exc:
        sock.close()
        raise _system_error("cannot connect to the server", exc) from exc
    return sock


def write_all(sock: Any, data: str | bytes) -> int:
    """Write all of data to a socket or stream and return the number of bytes or characters."""
    if hasattr(sock, "sendall"):
        payload = data.encode() if isinstance(data, str) else data
        sock.sendall(payload)
        return len(payload)
    if isinstance(sock, io.TextIOBase):
        text = data if isinstance(data, str) else data.decode()
        sock.write(text)
        written = len(text)
    else:
        payload = data.encode() if isinstance(data, str) else data
        sock.write(payload)
        written = len(payload)
    flush = getattr(sock, "flush", None)
    if flush is not None:
        flush()
    return written


def eval_polynomial(coeffs: Iterable[float], point: int) -> float:
    """Evaluate a polynomial given by coefficients from the constant term up, at point."""
    result = 0.0
    power = 1
    for coeff in coeffs:
        result += coeff * power
        power *= point
    return result


def format_peer(sock: socket.socket) -> str:
    """Return "[host]:port" of the peer connected to sock."""
    try:
        peer = sock.getpeername()
    except OSError as exc:
        raise _system_error("getpeername", exc) from exc
    host, port = peer[0], peer[1]
    try:
        address = ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        address = None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        host = str(address.ipv4_mapped)
    return f"[{host}]:{port}"