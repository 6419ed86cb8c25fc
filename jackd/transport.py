"""TCP byte-stream transport for the client.

The client only needs four things from a transport: read a chunk, buffer a
write, flush, and close. Anything providing those methods can stand in for
``SocketTransport`` (the test suite uses in-memory fakes).
"""

import logging
import socket

from .errors import JackdConnectionError
from .protocol import CONNECTION_TIMEOUT, DEFAULT_HOST, DEFAULT_PORT

logger = logging.getLogger(__name__)


class SocketTransport:
    """Buffered wrapper around a connected stream socket.

    Writes accumulate in memory until ``flush()`` so a command header and
    its body leave in one ``sendall``. Socket errors and timeouts surface
    as ``JackdConnectionError``.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock: socket.socket | None = sock
        self._wbuf = bytearray()

    @classmethod
    def connect(
        cls,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float | None = CONNECTION_TIMEOUT,
    ) -> "SocketTransport":
        """Open a TCP connection.

        Args:
            host: Server hostname or address.
            port: Server port.
            timeout: Seconds allowed for the connect and for each later
                read or write. None blocks indefinitely.

        Raises:
            JackdConnectionError: If the server can't be reached.
        """
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as exc:
            raise JackdConnectionError(
                f"Cannot connect to {host}:{port}: {exc}"
            ) from exc
        sock.settimeout(timeout)
        logger.info("Connected to %s:%s", host, port)
        return cls(sock)

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def read(self, max_bytes: int) -> bytes:
        """Return up to ``max_bytes`` bytes, or ``b""`` once the peer closes."""
        sock = self._require_sock()
        try:
            return sock.recv(max_bytes)
        except socket.timeout as exc:
            raise JackdConnectionError("Timed out waiting for response") from exc
        except OSError as exc:
            raise JackdConnectionError(f"Socket error: {exc}") from exc

    def write(self, data: bytes) -> None:
        self._require_sock()
        self._wbuf += data

    def flush(self) -> None:
        sock = self._require_sock()
        if not self._wbuf:
            return
        try:
            sock.sendall(self._wbuf)
        except socket.timeout as exc:
            raise JackdConnectionError("Timed out sending command") from exc
        except OSError as exc:
            raise JackdConnectionError(f"Send failed: {exc}") from exc
        finally:
            self._wbuf.clear()

    def close(self) -> None:
        """Close the socket. Later calls do nothing.

        The shutdown wakes a ``read`` blocked in another thread, which then
        sees end of stream.
        """
        sock = self._sock
        if sock is None:
            return
        self._sock = None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone.
            pass
        try:
            sock.close()
        except OSError as exc:
            logger.warning("Error closing socket: %s", exc)
        finally:
            self._wbuf.clear()
            logger.info("Disconnected")

    def _require_sock(self) -> socket.socket:
        if self._sock is None:
            raise JackdConnectionError("Not connected")
        return self._sock
