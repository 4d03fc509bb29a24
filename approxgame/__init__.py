"""Networked polynomial-approximation game: protocol helpers, game state, server and client."""

__version__ = "1.0.0"
__all__ = ["common", "messages", "scheduler", "game", "server", "client"]