"""The game server: accepts players, runs the protocol and scores finished games."""

from __future__ import annotations

import getopt
import re
import selectors
import socket
import sys
import time
from typing import Any

from approxgame.common import (
    SERVER_USAGE,
    FatalError,
    UsageError,
    format_peer,
    read_port,
    write_all,
)
from approxgame.game import Game, GameConfig
from approxgame.messages import (
    Message,
    is_hello,
    is_put,
    read_message,
    split,
)
from approxgame.scheduler import TaskScheduler

K_MAX = 10000
N_MAX = 8
M_MAX = 12341234
LISTEN_BACKLOG = 100
PAUSE_BETWEEN_GAMES = 1.0

_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)", re.ASCII)


def _leading_int(text: str) -> int:
    """Value of the integer text starts with, or 0 if it starts with none."""
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _bounded(text: str, upper: int) -> int:
    value = _leading_int(text)
    if value < 1 or value > upper:
        raise UsageError(SERVER_USAGE)
    return value


def parse_args(argv: list[str]) -> tuple[int, str, GameConfig]:
    """Parse server options and return (port, coefficients file, game config)."""
    try:
        options, _ = getopt.getopt(argv, "p:k:n:m:f:")
    except getopt.GetoptError as exc:
        raise UsageError(SERVER_USAGE) from exc
    port = 0
    path = ""
    config = GameConfig()
    for option, value in options:
        if option == "-p":
            port = read_port(value)
        elif option == "-k":
            config.k = _bounded(value, K_MAX)
        elif option == "-n":
            config.n = _bounded(value, N_MAX)
        elif option == "-m":
            config.m = _bounded(value, M_MAX)
        elif option == "-f":
            path = value
    if path == "":
        raise UsageError(SERVER_USAGE)
    return port, path, config


def _os_failure(what: str, exc: OSError) -> FatalError:
    return FatalError(f"{what} ({exc.errno}; {exc.strerror})")


def create_listener(port: int) -> socket.socket:
    """Return a dual-stack TCP socket listening on every interface at port."""
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    except OSError as exc:
        raise _os_failure("cannot create a socket", exc) from exc
    try:
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
    except OSError:
        pass
    try:
        sock.bind(("::", port))
    except OSError as exc:
        sock.close()
        raise _os_failure("bind", exc) from exc
    try:
        sock.listen(LISTEN_BACKLOG)
    except OSError as exc:
        sock.close()
        raise _os_failure("listen", exc) from exc
    return sock


class Server:
    """Serves one game after another to the players connected to listener."""

    def __init__(self, listener: socket.socket, coeffs_path: str, config: GameConfig | None = None) -> None:
        self.listener = listener
        self.config = config if config is not None else GameConfig()
        try:
            self._coeffs = open(coeffs_path, "rb")
        except OSError as exc:
            raise _os_failure(f"cannot open {coeffs_path}", exc) from exc
        self._selector = selectors.DefaultSelector()
        self._selector.register(listener, selectors.EVENT_READ)
        self.last_msg: dict[Any, Message] = {}
        self._peers: dict[Any, str] = {}
        self.scheduler = TaskScheduler(self._send, self._close, self._drop)
        self.game = Game(self.config, self.scheduler, self._send, sys.stdout)

    @staticmethod
    def _send(target: Any, text: str) -> None:
        try:
            write_all(target, text)
        except OSError:
            pass

    def _close(self, client: Any) -> None:
        try:
            self._selector.unregister(client)
        except (KeyError, ValueError):
            pass
        client.close()

    def _drop(self, client: Any) -> None:
        self.last_msg.pop(client, None)
        self._peers.pop(client, None)

    def _peer(self, client: Any) -> str:
        peer = self._peers.get(client)
        if peer is None:
            try:
                peer = format_peer(client)
            except (FatalError, IndexError, TypeError):
                peer = "UNKNOWN"
        return peer

    def _register(self, client: socket.socket, peer: str | None = None) -> None:
        if peer is None:
            peer = format_peer(client)
        client.setblocking(False)
        self._peers[client] = peer
        self._selector.register(client, selectors.EVENT_READ)
        self.scheduler.add_player(client)
        self.last_msg[client] = Message.NONE

    def _accept(self) -> None:
        try:
            client, _ = self.listener.accept()
        except OSError as exc:
            raise _os_failure("accept", exc) from exc
        peer = format_peer(client)
        print(f"New client {peer}.", flush=True)
        self._register(client, peer)

    def handle_message(self, client: Any, msg: str) -> None:
        """React to one message read from client ("" means it disconnected)."""
        last = self.last_msg.get(client, Message.NONE)
        if is_hello(msg) and last is Message.NONE:
            player_id = split(msg, " ")[1]
            print(f"{self._peer(client)} is now know as {player_id}", end="", flush=True)
            self.last_msg[client] = Message.COEFF
            self.game.add_player(client, player_id)
            self.scheduler.handle_hello(client)
            self.game.send_coefficients(client, self._coeffs)
        elif is_put(msg):
            if last not in (Message.COEFF, Message.STATE) or self.scheduler.is_answering(client):
                self.game.add_penalty(client, msg)
            elif not self.game.put_values_valid(msg):
                self.scheduler.add_send(client, 1, "BAD PUT " + msg[4:])
            else:
                self.game.add_put(client, msg)
        elif msg == "":
            self.scheduler.remove_client(client)
            self.game.remove_player(client)
        else:
            self.game.handle_wrong_message(client, msg, self._peer(client))

    def _step(self) -> None:
        events = self._selector.select(self.scheduler.timeout())
        ready = {key.fileobj for key, _ in events}
        if self.listener in ready:
            self._accept()
        for client in self.scheduler.clients:
            if client in ready and client.fileno() != -1:
                self.handle_message(client, read_message(client))
            if self.game.puts_count == self.game.m:
                break
        if not self.game.finished():
            self.scheduler.execute_due()
        else:
            self.game.scoring_message(self.scheduler.clients)
            self.game.clear()
            self.scheduler.clear()
            time.sleep(PAUSE_BETWEEN_GAMES)

    def run(self) -> None:
        """Serve games forever."""
        while True:
            self._step()


def main(argv: list[str] | None = None) -> int:
    """Start the server from command line arguments."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        port, path, config = parse_args(argv)
        Server(create_listener(port), path, config).run()
    except FatalError as exc:
        sys.stderr.write(f"\tERROR: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())