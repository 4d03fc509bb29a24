# approxgame

A small multiplayer game played over TCP. The server reads polynomial
coefficients from a file and gives each player the next line of that file.
Players try to approximate their polynomial at the points `0 .. K-1` by
sending `PUT <point> <value>` messages. Each accepted put adds the value to
the player's approximation at that point. When the total number of puts
reaches `M`, the server sends every connected player a `SCORING` message.
It then disconnects them all, waits one second and starts a new game.

## Installation

```
pip install .
```

The package needs only the standard library. To run the tests, install the
`test` extra (`pip install .[test]`) and run `pytest`.

## Running the server

```
approx-server -f <coefficients file> [-p <port>] [-k <K>] [-n <N>] [-m <M>]
```

| Option | Meaning | Default | Allowed range |
|--------|---------|---------|---------------|
| `-f` | File of `COEFF ...\r\n` lines. Each player who says hello is sent the next line | required | — |
| `-p` | Port to listen on; 0 lets the system choose one | `0` | 0–65535 |
| `-k` | Number of points | `100` | 1–10000 |
| `-n` | Polynomial degree. It is checked, but the game does not otherwise use it | `4` | 1–8 |
| `-m` | Total puts before the game ends | `131` | 1–12341234 |

Wrong or missing options print a usage line to standard error. The server
then exits with status 1.

The server listens on all interfaces over IPv6. Where the system allows it,
the same socket also accepts IPv4 connections. The server logs these events
to standard output:

- new clients;
- hellos;
- coefficients sent;
- puts;
- delayed state replies;
- the final scoring.

Malformed messages are reported on standard error.

Rules the server enforces:

- A client must send `HELLO <id>` within 3 seconds. Otherwise it is
  disconnected. The id is made of letters and digits.
- An accepted put is answered with `STATE` and the player's approximation at
  every point, each value with 7 decimal places. The reply is delayed by as
  many seconds as the player id has lower-case letters.
- A put made before the coefficients were sent is answered at once with
  `PENALTY <point> <value>`, and the player's penalty grows by 20. The same
  happens to a put made while a delayed reply to that player is still waiting.
- A put whose point is not in `0 .. K-1`, or whose value is not between -5
  and 5, is answered one second later with `BAD PUT <point> <value>`.
- A malformed message from a client that has not said hello gets that client
  disconnected.
- When a player leaves, the puts it made no longer count towards `M`.

`SCORING` lists each player id with a score. The score is the sum, over all
points, of the squared difference between the player's approximation and its
polynomial, minus the player's penalty total.

## Running the client

```
approx-client -u <player_id> -s <server> -p <port> [-4 | -6] [-a]
```

- `-u`: the player id (required).
- `-s`, `-p`: the server host and port (required; the port must not be 0).
- `-4` / `-6`: connect over IPv4 or IPv6 only.
- `-a`: play automatically. The client moves each point towards the real
  polynomial, by at most 5 per put, until every point is within 0.0001. After
  that it keeps sending `PUT 0 0`. Once it receives a `BAD_PUT` reply, it
  works only on points 0 and 1.

Without `-a`, the client reads lines of the form `<point> <value>` from
standard input and sends each one as a put. Invalid lines are reported and
not sent.

The client prints the coefficients it was given, every `STATE` and `BAD_PUT`
message, and the final scoring. Any other message from the server is reported
on standard error as a bad message.

The client exits with status 0 when the scoring arrives. It exits with
status 1 if the server disconnects or answers the hello with something other
than coefficients.

## Using the modules

- `approxgame.messages`:
  - `read_message` reads one `\r\n`-terminated message, or one line in line
    mode.
  - `is_hello`, `is_put`, `is_bad_put`, `is_state`, `is_coeff` and
    `is_player_put` check the form of a message.
  - `split` splits on a delimiter and drops a trailing empty token.
  - `Message` names the last message exchanged with a client.
- `approxgame.common`:
  - `read_port` parses a port number.
  - `eval_polynomial` evaluates a polynomial; coefficients start from the
    constant term.
  - `connect_to_server`, `write_all` and `format_peer` handle sockets.
  - Errors are raised as `FatalError`; bad command lines raise `UsageError`.
- `approxgame.scheduler.TaskScheduler` keeps the delayed actions of the
  server:
  - hello timeouts;
  - delayed sends;
  - removals of disconnected clients.
- `approxgame.game`:
  - `Game` keeps approximations, penalties and scores for one game.
  - `GameConfig` holds `k`, `n` and `m`.
- `approxgame.server.Server` and `approxgame.client` (`run_automatic`,
  `run_interactive`, `process_message`, `send_hello`) run the two sides of the
  game.

## What it does not do

- The server does not make up polynomials. Every coefficient comes from the
  file given with `-f`.
- The server keeps nothing between games. No scores or players are stored.
- The client does not handle coefficients sent after the hello. It reports
  them as bad messages.