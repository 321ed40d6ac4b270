import socket
import threading
from typing import Optional, Set

from loghandler import get_logger
from emulator.ts590sg import Ts590sgProtocol

DEFAULT_CAT_PORT = 4532
# A client that never terminates a command gets its buffer dropped past this.
MAX_PENDING_BYTES = 1024
STOP_GRACE_S = 5.0


class CatServerError(Exception):
    """Raised when the CAT listener cannot be opened."""
    pass


def split_commands(buffer: bytes):
    """
    Split buffered bytes into complete ';'-terminated commands.

    Returns (commands, remainder). CR/LF and other whitespace around a
    command is ignored, so 'FA;\\r\\nMD;' and 'FA;MD;' read the same.
    A bare ';' is kept as the command ';'.
    """
    commands = []
    while b";" in buffer:
        raw, buffer = buffer.split(b";", 1)
        text = raw.decode("ascii", errors="replace").strip().upper()
        commands.append(f"{text};")
    return commands, buffer


class CatServer:
    """
    TCP server speaking the TS-590SG CAT dialect to logging programs.

    Threads:
      - one accept loop
      - one handler per client connection (read command, write one reply)

    stop() closes the listener and every client socket, then joins the
    accept loop and handlers for up to the grace period.
    """

    def __init__(
        self,
        protocol: Ts590sgProtocol,
        host: str = "0.0.0.0",
        port: int = DEFAULT_CAT_PORT,
        *,
        accept_timeout: float = 0.5,
        recv_timeout: float = 0.5,
        debug: bool = False,
    ):
        self._logger = get_logger()
        self.protocol = protocol
        self.host = host
        self.port = int(port)
        self.accept_timeout = float(accept_timeout)
        self.recv_timeout = float(recv_timeout)
        self.debug = debug

        self._server: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._clients_lock = threading.Lock()
        self._clients: Set[socket.socket] = set()
        self._handlers: Set[threading.Thread] = set()

    @property
    def bound_port(self) -> Optional[int]:
        return self._server.getsockname()[1] if self._server else None

    @property
    def client_count(self) -> int:
        with self._clients_lock:
            return len(self._clients)

    def start(self, port: Optional[int] = None):
        if port is not None:
            self.port = int(port)

        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((self.host, self.port))
            s.listen(5)
        except OSError as e:
            s.close()
            self._logger.error(f"[CAT] Cannot listen on {self.host}:{self.port}: {e}")
            raise CatServerError(f"Cannot listen on {self.host}:{self.port}: {e}") from e

        s.settimeout(self.accept_timeout)
        self._server = s
        self._stop_evt.clear()
        self._accept_thread = threading.Thread(target=self._accept_loop, name="cat-accept", daemon=True)
        self._accept_thread.start()
        self._logger.info(f"[CAT] TS-590SG emulation listening on {self.host}:{self.bound_port}")

    def stop(self, grace: float = STOP_GRACE_S) -> bool:
        self._stop_evt.set()

        server, self._server = self._server, None
        if server:
            try:
                server.close()
            except OSError:
                pass

        with self._clients_lock:
            clients = list(self._clients)
            handlers = list(self._handlers)
        for conn in clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                conn.close()
            except OSError:
                pass

        finished = True
        threads = ([self._accept_thread] if self._accept_thread else []) + handlers
        for t in threads:
            t.join(timeout=grace)
            if t.is_alive():
                finished = False
        if not finished:
            self._logger.warning(f"[CAT] Server threads did not stop within {grace:.0f} seconds.")
        self._accept_thread = None
        self._logger.info("[CAT] TS-590SG emulation stopped")
        return finished

    # ---------- Threads ----------

    def _accept_loop(self):
        while not self._stop_evt.is_set():
            server = self._server
            if server is None:
                return
            try:
                conn, addr = server.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._stop_evt.is_set():
                    self._logger.error(f"[CAT] Error accepting client: {e}")
                    self._stop_evt.wait(0.5)
                continue

            conn.settimeout(self.recv_timeout)
            t = threading.Thread(target=self._handle_client, args=(conn, addr), name=f"cat-client-{addr[1]}", daemon=True)
            with self._clients_lock:
                self._clients.add(conn)
                self._handlers.add(t)
            t.start()

    def _handle_client(self, conn: socket.socket, addr):
        self._logger.info(f"[CAT] Client connected: {addr[0]}:{addr[1]}")
        buffer = b""
        try:
            while not self._stop_evt.is_set():
                try:
                    chunk = conn.recv(1024)
                except socket.timeout:
                    continue
                if not chunk:
                    break
                buffer += chunk
                commands, buffer = split_commands(buffer)
                if len(buffer) > MAX_PENDING_BYTES:
                    self._logger.warning(
                        f"[CAT] Client {addr[0]}:{addr[1]} sent {len(buffer)} bytes without ';', discarding"
                    )
                    buffer = b""
                for command in commands:
                    reply = self.protocol.process_command(command)
                    if self.debug:
                        self._logger.debug(f"[CAT] {command} -> {reply}")
                    conn.sendall(reply.encode("ascii"))
        except OSError as e:
            if not self._stop_evt.is_set():
                self._logger.warning(f"[CAT] Client {addr[0]}:{addr[1]} I/O error: {e}")
        finally:
            with self._clients_lock:
                self._clients.discard(conn)
                self._handlers.discard(threading.current_thread())
            try:
                conn.close()
            except OSError:
                pass
            self._logger.info(f"[CAT] Client disconnected: {addr[0]}:{addr[1]}")
