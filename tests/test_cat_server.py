import socket
import time

import pytest

from emulator import CatServer, CatServerError, Ts590sgProtocol
from emulator.server import MAX_PENDING_BYTES, split_commands
from radio_state import Mode, RadioState


def recv_exact(conn, size, timeout=2.0):
    conn.settimeout(timeout)
    data = b""
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data.decode("ascii")


@pytest.fixture()
def server():
    protocol = Ts590sgProtocol(state=RadioState(rx_frequency="14195000", mode=Mode.USB))
    srv = CatServer(protocol, host="127.0.0.1", port=0, accept_timeout=0.05, recv_timeout=0.05)
    srv.start()
    yield srv
    srv.stop(grace=2.0)


def test_split_commands_keeps_remainder():
    commands, rest = split_commands(b"fa;\r\nMD;;IF")
    assert commands == ["FA;", "MD;", ";"]
    assert rest == b"IF"


def test_one_reply_per_command(server):
    with socket.create_connection(("127.0.0.1", server.bound_port), timeout=2) as conn:
        conn.sendall(b"FA;")
        assert recv_exact(conn, len("FA00014195000;")) == "FA00014195000;"

        conn.sendall(b"MD;\r\nID;")
        assert recv_exact(conn, len("MD2;ID023;")) == "MD2;ID023;"

        conn.sendall(b"ZZ;")
        assert recv_exact(conn, 2) == "?;"


def test_command_split_across_packets(server):
    with socket.create_connection(("127.0.0.1", server.bound_port), timeout=2) as conn:
        conn.sendall(b"I")
        time.sleep(0.05)
        conn.sendall(b"F;")
        assert len(recv_exact(conn, 38)) == 38


def test_reply_tracks_state_updates(server):
    server.protocol.update_state(RadioState(rx_frequency="3573000", mode=Mode.LSB))
    with socket.create_connection(("127.0.0.1", server.bound_port), timeout=2) as conn:
        conn.sendall(b"FA;MD;")
        assert recv_exact(conn, len("FA00003573000;MD1;")) == "FA00003573000;MD1;"


def test_unterminated_input_is_discarded(server):
    with socket.create_connection(("127.0.0.1", server.bound_port), timeout=2) as conn:
        conn.sendall(b"X" * (MAX_PENDING_BYTES + 500))
        time.sleep(0.2)
        conn.sendall(b"FA;")
        # the junk was dropped, so the next command is answered normally
        assert recv_exact(conn, len("FA00014195000;")) == "FA00014195000;"


def test_clients_are_independent(server):
    a = socket.create_connection(("127.0.0.1", server.bound_port), timeout=2)
    b = socket.create_connection(("127.0.0.1", server.bound_port), timeout=2)
    try:
        a.close()
        b.sendall(b"AI;")
        assert recv_exact(b, 4) == "AI0;"
    finally:
        b.close()


def test_stop_closes_clients_and_listener(server):
    conn = socket.create_connection(("127.0.0.1", server.bound_port), timeout=2)
    port = server.bound_port
    deadline = time.time() + 2
    while server.client_count == 0 and time.time() < deadline:
        time.sleep(0.01)
    assert server.client_count == 1

    assert server.stop(grace=2.0) is True
    assert server.bound_port is None
    conn.settimeout(2)
    try:
        assert conn.recv(16) == b""
    except OSError:
        pass
    finally:
        conn.close()
    with pytest.raises(OSError):
        socket.create_connection(("127.0.0.1", port), timeout=0.5)


def test_bind_failure_raises():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        srv = CatServer(Ts590sgProtocol(), host="127.0.0.1", port=blocker.getsockname()[1])
        with pytest.raises(CatServerError):
            srv.start()
    finally:
        blocker.close()
