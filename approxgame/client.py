"""The game client: says hello, then makes puts by hand or automatically."""

from __future__ import annotations

import enum
import getopt
import itertools
import math
import selectors
import socket
import sys
from dataclasses import dataclass
from typing import Any

from approxgame.common import (
    CLIENT_USAGE,
    FatalError,
    UsageError,
    connect_to_server,
    eval_polynomial,
    format_peer,
    read_port,
    write_all,
)
from approxgame.messages import (
    is_bad_put,
    is_coeff,
    is_player_put,
    is_state,
    read_message,
    split,
)

PRECISION = 0.0001
MAX_STEP = 5.0
_LIMIT_AFTER_BAD_PUT = 2


class Reply(enum.Enum):
    """How the client goes on after a message from the server."""

    CONTINUE = "continue"
    BAD_PUT = "bad_put"
    SCORING = "scoring"
    DISCONNECTED = "disconnected"

    @property
    def finished(self) -> bool:
        """True if the game is over for this client."""
        return self in (Reply.SCORING, Reply.DISCONNECTED)

    @property
    def exit_code(self) -> int:
        """Exit status of the client when the game ends with this reply."""
        return 1 if self is Reply.DISCONNECTED else 0


@dataclass
class _Options:
    player_id: str
    server: str
    port: str
    family: int
    automatic: bool


def _trim(text: str) -> str:
    return text[:-2] if text.endswith("\r\n") else text


def _say(text: str) -> None:
    print(text, flush=True)


def _complain(text: str) -> None:
    sys.stderr.write(text + "\n")
    sys.stderr.flush()


def _peer(sock: Any) -> str:
    try:
        return format_peer(sock)
    except (FatalError, AttributeError, IndexError, TypeError):
        return "UNKNOWN"


def _print_bad_message(peer: str, msg: str) -> None:
    _complain(f"ERROR: bad message from {peer}, UNKNOWN: {_trim(msg)}")


def parse_args(argv: list[str]) -> _Options:
    """Parse client options; raise UsageError when required ones are missing."""
    try:
        options, _ = getopt.getopt(argv, "u:s:p:46a")
    except getopt.GetoptError as exc:
        raise UsageError(CLIENT_USAGE) from exc
    player_id = ""
    server = ""
    port = "0"
    family = socket.AF_UNSPEC
    automatic = False
    for option, value in options:
        if option == "-u":
            player_id = value
        elif option == "-s":
            server = value
        elif option == "-p":
            read_port(value)
            port = value
        elif option == "-4":
            family = socket.AF_INET
        elif option == "-6":
            family = socket.AF_INET6
        elif option == "-a":
            automatic = True
    if not server or not player_id or port == "0":
        raise UsageError(CLIENT_USAGE)
    return _Options(player_id, server, port, family, automatic)


def parse_coefficients(msg: str) -> list[float]:
    """The coefficients carried by a COEFF message."""
    return [float(token) for token in split(msg, " ")[1:]]


def process_message(msg: str, peer: str) -> Reply:
    """Report one message from the server and tell how the client goes on."""
    if msg == "":
        _complain("ERROR: unexpected server disconnect")
        return Reply.DISCONNECTED
    tokens = split(msg, " ")
    head = tokens[0] if tokens else ""
    if head == "SCORING":
        _say("Game end, scoring: " + _trim(msg[8:]))
        return Reply.SCORING
    if head == "STATE" and is_state(msg):
        _say("Recieved state" + _trim(msg[5:]))
    elif head == "BAD_PUT" and is_bad_put(msg):
        _say("Bad put" + _trim(msg[7:]))
        return Reply.BAD_PUT
    else:
        _print_bad_message(peer, msg)
    return Reply.CONTINUE


def send_hello(sock: Any, stream: Any, player_id: str, peer: str) -> list[float]:
    """Greet the server and return the coefficients it answers with.

    An empty list means the server disconnected or answered badly.
    """
    write_all(sock, f"HELLO {player_id}\r\n")
    msg = read_message(stream)
    if msg == "":
        _complain("ERROR: unexpected server disconnect")
        return []
    if not is_coeff(msg):
        _print_bad_message(peer, msg)
        return []
    _say("Recieved coefficients" + _trim(msg[5:]))
    return parse_coefficients(msg)


def _put(sock: Any, point: int, value: float) -> None:
    write_all(sock, f"PUT {point} {value:g}\r\n")
    _say(f"Putting {value:g} in {point}")


def run_automatic(sock: Any, player_id: str) -> int:
    """Play by moving each point towards the polynomial in steps of at most 5."""
    peer = _peer(sock)
    coeffs = send_hello(sock, sock, player_id, peer)
    if not coeffs:
        return 1
    values: list[float] = []
    limit: int | None = None
    while True:
        points = itertools.count() if limit is None else range(limit)
        for point in points:
            if len(values) == point:
                values.append(0.0)
            diff = eval_polynomial(coeffs, point) - values[point]
            if abs(diff) > PRECISION:
                step = math.copysign(min(abs(diff), MAX_STEP), diff)
                values[point] += step
                _put(sock, point, step)
                break
        else:
            _put(sock, 0, 0.0)

        reply = process_message(read_message(sock), peer)
        if reply.finished:
            return reply.exit_code
        if reply is Reply.BAD_PUT:
            limit = _LIMIT_AFTER_BAD_PUT


def run_interactive(sock: Any, player_id: str) -> int:
    """Play with puts typed on standard input as "<point> <value>" lines."""
    peer = _peer(sock)
    if not send_hello(sock, sock, player_id, peer):
        sock.close()
        return 1
    stdin = sys.stdin
    with selectors.DefaultSelector() as selector:
        selector.register(stdin, selectors.EVENT_READ)
        selector.register(sock, selectors.EVENT_READ)
        while True:
            ready = {key.fileobj for key, _ in selector.select()}
            if stdin in ready:
                line = stdin.readline()
                if line == "":
                    selector.unregister(stdin)
                elif is_player_put(line):
                    write_all(sock, "PUT " + line[:-1] + "\r\n")
                    point, value = line.split()
                    _say(f"Putting {point} in {value}")
                else:
                    sys.stdout.write("ERROR: invalid input line " + line)
                    sys.stdout.flush()
            if sock in ready:
                reply = process_message(read_message(sock), peer)
                if reply.finished:
                    return reply.exit_code


def main(argv: list[str] | None = None) -> int:
    """Start the client from command line arguments."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        options = parse_args(argv)
        sock = connect_to_server(options.server, options.port, options.family)
        with sock:
            _say(f"Connected to {format_peer(sock)}")
            if options.automatic:
                return run_automatic(sock, options.player_id)
            return run_interactive(sock, options.player_id)
    except FatalError as exc:
        sys.stderr.write(f"\tERROR: {exc}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())