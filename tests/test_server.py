import socket
import time

import pytest

from approxgame.common import SERVER_USAGE, FatalError, UsageError
from approxgame.game import GameConfig
from approxgame.messages import Message
from approxgame.server import Server, main, parse_args


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(5)
    yield sock
    sock.close()


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(5)
    yield server_side, client_side
    server_side.close()
    client_side.close()


def _server(listener, tmp_path, coeffs="COEFF 1 2\r\n", **config):
    path = tmp_path / "coeffs.txt"
    path.write_bytes(coeffs.encode())
    return Server(listener, str(path), GameConfig(**config))


def _recv_line(sock):
    data = b""
    while not data.endswith(b"\r\n"):
        chunk = sock.recv(1)
        if not chunk:
            break
        data += chunk
    return data.decode()


def _recv_until_eof(sock):
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return data.decode()
        data += chunk


def _later():
    return time.monotonic() + 10


def test_parse_args_all_options():
    port, path, config = parse_args(["-p", "2000", "-k", "10", "-n", "3", "-m", "5", "-f", "c.txt"])
    assert port == 2000
    assert path == "c.txt"
    assert config == GameConfig(k=10, n=3, m=5)


def test_parse_args_defaults():
    port, path, config = parse_args(["-f", "c.txt"])
    assert (port, path) == (0, "c.txt")
    assert config == GameConfig(k=100, n=4, m=131)


def test_parse_args_accepts_upper_limits():
    _, _, config = parse_args(["-k", "10000", "-n", "8", "-m", "12341234", "-f", "x"])
    assert (config.k, config.n, config.m) == (10000, 8, 12341234)


def test_parse_args_requires_file():
    with pytest.raises(UsageError) as info:
        parse_args(["-p", "2000"])
    assert str(info.value) == SERVER_USAGE


@pytest.mark.parametrize(
    "args",
    [
        ["-k", "0"],
        ["-k", "10001"],
        ["-n", "9"],
        ["-m", "12341235"],
        ["-k", "abc"],
        ["-x"],
    ],
)
def test_parse_args_rejects_bad_values(args):
    with pytest.raises(UsageError):
        parse_args(args + ["-f", "x"])


def test_parse_args_rejects_bad_port():
    with pytest.raises(FatalError) as info:
        parse_args(["-p", "70000", "-f", "x"])
    assert str(info.value) == "70000 is not a valid port number"


def test_main_reports_usage(capsys):
    assert main([]) == 1
    assert SERVER_USAGE in capsys.readouterr().err


def test_hello_sends_coefficients(listener, tmp_path, pair, capsys):
    server_side, client_side = pair
    server = _server(listener, tmp_path)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "HELLO AB\r\n")
    assert _recv_line(client_side) == "COEFF 1 2\r\n"
    assert server.last_msg[server_side] is Message.COEFF
    assert server.game.ids[server_side] == "AB"
    assert server.game.coeffs[server_side] == [1.0, 2.0]
    assert "[peer]:1 is now know as AB" in capsys.readouterr().out


def test_put_before_hello_is_penalised(listener, tmp_path, pair):
    server_side, client_side = pair
    server = _server(listener, tmp_path)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "PUT 1 2\r\n")
    assert _recv_line(client_side) == "PENALTY 1 2\r\n"
    assert server.game.penalties[server_side] == 20


def test_valid_put_updates_state(listener, tmp_path, pair):
    server_side, client_side = pair
    server = _server(listener, tmp_path, k=3)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "HELLO AB\r\n")
    _recv_line(client_side)
    server.handle_message(server_side, "PUT 1 2\r\n")
    assert server.game.approximations[server_side] == [0.0, 2.0, 0.0]
    assert server.game.puts_count == 1
    assert server.scheduler.is_answering(server_side)
    server.scheduler.execute_due(_later())
    assert _recv_line(client_side) == "STATE 0.0000000 2.0000000 0.0000000\r\n"
    assert not server.scheduler.is_answering(server_side)


def test_put_while_answering_is_penalised(listener, tmp_path, pair):
    server_side, client_side = pair
    server = _server(listener, tmp_path, k=3)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "HELLO AB\r\n")
    _recv_line(client_side)
    server.handle_message(server_side, "PUT 1 2\r\n")
    server.handle_message(server_side, "PUT 0 1\r\n")
    assert _recv_line(client_side) == "PENALTY 0 1\r\n"
    assert server.game.penalties[server_side] == 20
    assert server.game.puts_count == 1


def test_out_of_range_put_gets_bad_put(listener, tmp_path, pair):
    server_side, client_side = pair
    server = _server(listener, tmp_path, k=3)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "HELLO AB\r\n")
    _recv_line(client_side)
    server.handle_message(server_side, "PUT 7 1\r\n")
    assert server.game.puts_count == 0
    server.scheduler.execute_due(_later())
    assert _recv_line(client_side) == "BAD PUT 7 1\r\n"


def test_disconnect_removes_client(listener, tmp_path, pair):
    server_side, _ = pair
    server = _server(listener, tmp_path)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "")
    assert server_side.fileno() == -1
    server.scheduler.execute_due(_later())
    assert server_side not in server.last_msg
    assert server.scheduler.clients == []


def test_wrong_message_from_unknown_client(listener, tmp_path, pair, capsys):
    server_side, _ = pair
    server = _server(listener, tmp_path)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "FOO\r\n")
    assert "ERROR: bad message from [peer]:1, UNKNOWN: FOO" in capsys.readouterr().err
    assert server_side.fileno() == -1


def test_second_hello_is_reported_but_kept(listener, tmp_path, pair, capsys):
    server_side, client_side = pair
    server = _server(listener, tmp_path)
    server._register(server_side, "[peer]:1")
    server.handle_message(server_side, "HELLO AB\r\n")
    _recv_line(client_side)
    server.handle_message(server_side, "HELLO AB\r\n")
    assert "ERROR: bad message from [peer]:1, AB: HELLO AB" in capsys.readouterr().err
    assert server_side.fileno() != -1
    assert server.game.ids[server_side] == "AB"


def test_full_game_over_tcp(listener, tmp_path, capsys):
    server = _server(listener, tmp_path, coeffs="COEFF 1\r\n", k=3, n=1, m=1)
    client = socket.create_connection(listener.getsockname(), timeout=5)
    try:
        server._step()
        assert "New client [127.0.0.1]:" in capsys.readouterr().out
        client.sendall(b"HELLO AB\r\n")
        server._step()
        assert _recv_line(client) == "COEFF 1\r\n"
        client.sendall(b"PUT 0 1\r\n")
        server._step()
        rest = _recv_until_eof(client)
        assert rest.startswith("SCORING AB ")
        assert rest.endswith("\r\n")
        assert server.game.puts_count == 0
        assert server.scheduler.clients == []
        assert "Game end, scoring: AB " in capsys.readouterr().out
    finally:
        client.close()