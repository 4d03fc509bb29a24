"""State of a game: players, their approximations, penalties and scores."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TextIO

from approxgame.common import eval_polynomial, write_all
from approxgame.messages import read_message, split
from approxgame.scheduler import TaskScheduler

PENALTY = 20
VALUE_LIMIT = 5


@dataclass
class GameConfig:
    """Game parameters: number of points k, polynomial degree n, puts per game m."""

    k: int = 100
    n: int = 4
    m: int = 131


def _strip_crlf(text: str) -> str:
    return text[:-2] if len(text) >= 2 else text


def _int_prefix(text: str) -> int:
    """Integer value of the leading number in text, truncating any fraction."""
    return int(float(text))


class Game:
    """Tracks every player's approximation and the number of puts made."""

    def __init__(
        self,
        config: GameConfig,
        scheduler: TaskScheduler,
        send: Callable[[Any, str], Any] = write_all,
        log: TextIO | None = None,
    ) -> None:
        self.config = config
        self.scheduler = scheduler
        self._send = send
        self._log = log if log is not None else sys.stdout
        self.m = config.m
        self.puts_count = 0
        self.ids: dict[Any, str] = {}
        self.approximations: dict[Any, list[float]] = {}
        self.coeffs: dict[Any, list[float]] = {}
        self.penalties: dict[Any, int] = {}
        self.client_puts: dict[Any, int] = {}

    def _write_log(self, text: str) -> None:
        self._log.write(text)
        self._log.flush()

    def add_player(self, client: Any, player_id: str) -> None:
        """Start tracking client under player_id (given with its trailing CRLF)."""
        self.ids[client] = _strip_crlf(player_id)
        self.approximations[client] = [0.0] * self.config.k
        self.penalties[client] = 0
        self.client_puts[client] = 0

    def state_message(self, client: Any) -> str:
        """The STATE message holding client's current approximation."""
        values = "".join(f" {value:.7f}" for value in self.approximations.get(client, []))
        return f"STATE{values}\r\n"

    def add_penalty(self, client: Any, msg: str) -> None:
        """Answer a put made out of turn with PENALTY and charge the player."""
        self._send(client, "PENALTY " + msg[4:])
        self.penalties[client] = self.penalties.get(client, 0) + PENALTY

    def add_put(self, client: Any, msg: str) -> None:
        """Apply a valid PUT and schedule the state reply after the player's delay."""
        self.puts_count += 1
        parts = split(msg, " ")
        point = int(parts[1])
        value = float(parts[2])
        self.approximations[client][point] += value
        player = self.ids.get(client, "")
        self._write_log(f"{player} puts {_strip_crlf(parts[2])} in {parts[1]}\n")

        state = self.state_message(client)
        delay = sum(1 for ch in player if "a" <= ch <= "z")
        self.scheduler.add_send(client, delay, state)
        self.scheduler.add_send(self._log, delay, f"Sending state {state[6:-2]} to {player}\n")
        self.client_puts[client] = self.client_puts.get(client, 0) + 1

    def put_values_valid(self, msg: str) -> bool:
        """True if the point of a PUT is on the board and its value within limits."""
        parts = split(msg, " ")
        point = _int_prefix(parts[1])
        value = _int_prefix(parts[2])
        return 0 <= point < self.config.k and -VALUE_LIMIT <= value <= VALUE_LIMIT

    def remove_player(self, client: Any) -> None:
        """Forget client; its puts no longer count towards the end of the game."""
        self.m -= self.client_puts.pop(client, 0)
        self.ids.pop(client, None)
        self.approximations.pop(client, None)
        self.penalties.pop(client, None)

    def send_coefficients(self, client: Any, coeffs_source: Any) -> list[float]:
        """Read the next COEFF line from coeffs_source, send it to client and keep it."""
        msg = read_message(coeffs_source)
        self._send(client, msg)
        self._write_log(f"{self.ids.get(client, '')} get coefficients {msg[6:]}")
        coefficients = [float(token) for token in split(msg, " ")[1:]]
        self.coeffs[client] = coefficients
        return coefficients

    def score(self, client: Any) -> float:
        """Sum of squared differences between client's approximation and the polynomial."""
        approximation = self.approximations.get(client, [0.0] * self.config.k)
        coefficients = self.coeffs.get(client, [])
        return sum(
            (value - eval_polynomial(coefficients, point)) ** 2
            for point, value in enumerate(approximation[: self.config.k])
        )

    def scoring_message(self, clients: Iterable[Any]) -> str:
        """Build the SCORING message, log it, send it to every client and return it."""
        clients = list(clients)
        scoring = "".join(
            f" {self.ids.get(client, '')} {self.score(client) - self.penalties.get(client, 0):f}"
            for client in clients
        )
        scoring += "\r\n"
        self._write_log("Game end, scoring:" + scoring)
        message = "SCORING" + scoring
        for client in clients:
            self._send(client, message)
        return message

    def finished(self) -> bool:
        """True once the number of puts reached the game's limit."""
        return self.puts_count >= self.m

    def clear(self) -> None:
        """Reset all per-game state."""
        self.ids.clear()
        self.approximations.clear()
        self.penalties.clear()
        self.coeffs.clear()
        self.client_puts.clear()
        self.puts_count = 0

    def handle_wrong_message(self, client: Any, msg: str, peer: str) -> None:
        """Report a malformed message; a client that never said hello is removed."""
        name = self.ids.get(client, "UNKNOWN")
        sys.stderr.write(f"ERROR: bad message from {peer}, {name}: {_strip_crlf(msg)}\n")
        sys.stderr.flush()
        if client not in self.ids:
            self.scheduler.remove_client(client)
            self.remove_player(client)