"""Synchronous beanstalkd client over a single connection.

The protocol has no request ids: replies are matched to commands purely by
order. Every operation therefore holds one lock for its full round trip
(write the command, read the header, read any body), so threads sharing a
client simply take turns.

Usage::

    with dial("localhost", 11300) as client:
        result = client.put(b"resize 1234.jpg", ttr=120)
        job = client.reserve()
        client.delete(job.id)
"""

import logging
import threading

from . import commands
from .commands import Command
from .errors import (
    ErrorKind,
    JackdConnectionError,
    MalformedResponseError,
    ServerError,
    classify,
)
from .framing import FrameReader, read_body
from .protocol import (
    CONNECTION_TIMEOUT,
    DEFAULT_DELAY,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PRIORITY,
    DEFAULT_TTR,
    BuriedOnInsert,
    Inserted,
    Job,
    decode_line,
    parse_header,
)
from .transport import SocketTransport

logger = logging.getLogger(__name__)

_NONE: frozenset[ErrorKind] = frozenset()
_NOT_FOUND = frozenset({ErrorKind.NOT_FOUND})
_PUT_ERRORS = frozenset(
    {
        ErrorKind.BURIED,
        ErrorKind.EXPECTED_CRLF,
        ErrorKind.JOB_TOO_BIG,
        ErrorKind.DRAINING,
    }
)
_RESERVE_ERRORS = frozenset({ErrorKind.DEADLINE_SOON, ErrorKind.TIMED_OUT})
_RELEASE_ERRORS = frozenset({ErrorKind.BURIED, ErrorKind.NOT_FOUND})
_IGNORE_ERRORS = frozenset({ErrorKind.NOT_IGNORED})


def dial(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    timeout: float | None = CONNECTION_TIMEOUT,
) -> "JackdClient":
    """Connect to a beanstalkd server and return a client for it.

    ``timeout`` also bounds every later read and write. Leave it as None for
    workers that block in ``reserve()``.

    Raises:
        JackdConnectionError: If the connection can't be made.
    """
    return JackdClient(SocketTransport.connect(host, port, timeout))


class JackdClient:
    """One connection, one command in flight.

    Args:
        transport: Duplex byte stream with ``read(n)``, ``write(data)``,
            ``flush()`` and ``close()``.

    Error replies raise ``ServerError`` and leave the connection usable.
    Transport failures, malformed replies and truncated bodies raise
    ``JackdConnectionError``; after that every call fails fast and the
    caller has to dial again.
    """

    def __init__(self, transport) -> None:
        self._transport = transport
        self._reader = FrameReader(transport.read)
        # Serializes full command/response cycles.
        self._io_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._broken: Exception | None = None
        self._closed = False

    # --- Connection lifecycle ---

    @property
    def is_usable(self) -> bool:
        """False once the connection is closed or has failed."""
        return not self._closed and self._broken is None

    def close(self) -> None:
        """Close the transport without saying goodbye to the server.

        Doesn't wait for an operation in flight, so another thread can
        stop a worker blocked in ``reserve()``. The blocked call raises
        ``JackdConnectionError``.
        """
        self._close_transport()

    def quit(self) -> None:
        """Send ``quit`` and close. The server sends no reply."""
        with self._io_lock:
            try:
                self._check_usable()
                self._send(commands.build_quit())
            finally:
                self._close_transport()

    def __enter__(self) -> "JackdClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Producer ---

    def put(
        self,
        body: bytes | str,
        priority: int = DEFAULT_PRIORITY,
        delay: int = DEFAULT_DELAY,
        ttr: int = DEFAULT_TTR,
    ) -> Inserted | BuriedOnInsert:
        """Put a job into the currently used tube.

        Returns:
            ``Inserted`` normally, ``BuriedOnInsert`` when the server
            created the job but buried it straight away.

        Raises:
            ServerError: EXPECTED_CRLF, JOB_TOO_BIG, DRAINING, or a
                generic error.
        """
        command = commands.build_put(body, priority, delay, ttr)
        with self._io_lock:
            line = self._round_trip(command)
            error = self._classify(line, _PUT_ERRORS)
            if error is not None:
                if error.kind is ErrorKind.BURIED:
                    (job_id,) = self._buried_id(line, error)
                    return BuriedOnInsert(job_id)
                raise error
            (job_id,) = self._parse(line, "INSERTED", int)
            return Inserted(job_id)

    def use(self, tube: str) -> str:
        """Select the tube that ``put`` inserts into. Returns its name."""
        command = commands.build_use(tube)
        with self._io_lock:
            line = self._round_trip(command)
            self._raise_for(line, _NONE)
            (name,) = self._parse(line, "USING", str)
            return name

    # --- Worker ---

    def reserve(self, timeout: int | None = None) -> Job:
        """Reserve the next ready job from the watched tubes.

        Blocks until a job is ready, or for at most ``timeout`` seconds.

        Raises:
            ServerError: TIMED_OUT when the timeout passes, DEADLINE_SOON
                when a job this client holds is about to expire.
        """
        return self._job_command(commands.build_reserve(timeout), "RESERVED", _RESERVE_ERRORS)

    def reserve_job(self, job_id: int) -> Job:
        """Reserve a specific job by id."""
        return self._job_command(
            commands.build_reserve_job(job_id), "RESERVED", _RESERVE_ERRORS | _NOT_FOUND
        )

    def delete(self, job_id: int) -> None:
        self._status_command(commands.build_delete(job_id), "DELETED", _NOT_FOUND)

    def release(
        self,
        job_id: int,
        priority: int = DEFAULT_PRIORITY,
        delay: int = DEFAULT_DELAY,
    ) -> None:
        """Put a reserved job back into the ready (or delayed) queue."""
        self._status_command(
            commands.build_release(job_id, priority, delay), "RELEASED", _RELEASE_ERRORS
        )

    def bury(self, job_id: int, priority: int = DEFAULT_PRIORITY) -> None:
        self._status_command(commands.build_bury(job_id, priority), "BURIED", _NOT_FOUND)

    def touch(self, job_id: int) -> None:
        """Ask for more time to work on a reserved job."""
        self._status_command(commands.build_touch(job_id), "TOUCHED", _NOT_FOUND)

    def watch(self, tube: str) -> int:
        """Add a tube to the watch list. Returns the number of watched tubes."""
        return self._count_command(commands.build_watch(tube), "WATCHING", _NONE)

    def ignore(self, tube: str) -> int:
        """Remove a tube from the watch list. Returns the number still watched.

        Raises:
            ServerError: NOT_IGNORED when it is the last watched tube.
        """
        return self._count_command(commands.build_ignore(tube), "WATCHING", _IGNORE_ERRORS)

    # --- Inspection ---

    def peek(self, job_id: int) -> Job:
        return self._job_command(commands.build_peek(job_id), "FOUND", _NOT_FOUND)

    def peek_ready(self) -> Job:
        return self._job_command(commands.build_peek_ready(), "FOUND", _NOT_FOUND)

    def peek_delayed(self) -> Job:
        return self._job_command(commands.build_peek_delayed(), "FOUND", _NOT_FOUND)

    def peek_buried(self) -> Job:
        return self._job_command(commands.build_peek_buried(), "FOUND", _NOT_FOUND)

    def kick(self, bound: int) -> int:
        """Kick up to ``bound`` jobs in the used tube. Returns how many moved."""
        return self._count_command(commands.build_kick(bound), "KICKED", _NONE)

    def kick_job(self, job_id: int) -> None:
        self._status_command(commands.build_kick_job(job_id), "KICKED", _NOT_FOUND)

    def stats_job(self, job_id: int) -> bytes:
        """Return the YAML stats body for one job."""
        return self._data_command(commands.build_stats_job(job_id))

    def stats_tube(self, tube: str) -> bytes:
        """Return the YAML stats body for one tube."""
        return self._data_command(commands.build_stats_tube(tube))

    def stats(self) -> bytes:
        """Return the YAML stats body for the whole server."""
        return self._data_command(commands.build_stats())

    def list_tubes(self) -> bytes:
        """Return a YAML list of every existing tube."""
        return self._data_command(commands.build_list_tubes())

    def list_tube_used(self) -> str:
        """Return the name of the tube ``put`` currently inserts into."""
        with self._io_lock:
            line = self._round_trip(commands.build_list_tube_used())
            self._raise_for(line, _NONE)
            (name,) = self._parse(line, "USING", str)
            return name

    def list_tubes_watched(self) -> bytes:
        """Return a YAML list of the tubes this connection watches."""
        return self._data_command(commands.build_list_tubes_watched())

    def pause_tube(self, tube: str, delay: int) -> None:
        """Stop handing out jobs from ``tube`` for ``delay`` seconds."""
        self._status_command(commands.build_pause_tube(tube, delay), "PAUSED", _NOT_FOUND)

    # --- Reply shapes ---

    def _status_command(
        self, command: Command, expected: str, allowed: frozenset[ErrorKind]
    ) -> None:
        with self._io_lock:
            line = self._round_trip(command)
            self._raise_for(line, allowed)
            self._parse(line, expected)

    def _count_command(
        self, command: Command, expected: str, allowed: frozenset[ErrorKind]
    ) -> int:
        with self._io_lock:
            line = self._round_trip(command)
            self._raise_for(line, allowed)
            (count,) = self._parse(line, expected, int)
            return count

    def _job_command(
        self, command: Command, expected: str, allowed: frozenset[ErrorKind]
    ) -> Job:
        with self._io_lock:
            line = self._round_trip(command)
            self._raise_for(line, allowed)
            job_id, length = self._parse(line, expected, int, int)
            return Job(job_id, self._read_body(length))

    def _data_command(self, command: Command) -> bytes:
        with self._io_lock:
            line = self._round_trip(command)
            self._raise_for(line, _NOT_FOUND)
            (length,) = self._parse(line, "OK", int)
            return self._read_body(length)

    # --- Internal I/O (caller holds _io_lock) ---

    def _round_trip(self, command: Command) -> bytes:
        """Send a command and return its reply header."""
        self._check_usable()
        self._send(command)
        try:
            line = self._reader.next_frame()
        except (JackdConnectionError, OSError) as exc:
            self._broken = exc
            raise
        if line is None:
            exc = JackdConnectionError("Server closed connection")
            self._broken = exc
            raise exc
        if self._reader.truncated:
            exc = MalformedResponseError(line, "stream ended inside reply header")
            self._broken = exc
            raise exc
        logger.debug("<- %r", line[:80])
        return line

    def _send(self, command: Command) -> None:
        logger.debug("-> %r", command)
        try:
            self._transport.write(commands.encode(command))
            self._transport.flush()
        except (JackdConnectionError, OSError) as exc:
            self._broken = exc
            raise

    def _read_body(self, length: int) -> bytes:
        try:
            return read_body(self._reader, length)
        except (JackdConnectionError, OSError) as exc:
            self._broken = exc
            raise

    def _raise_for(self, line: bytes, allowed: frozenset[ErrorKind]) -> None:
        error = self._classify(line, allowed)
        if error is not None:
            logger.debug("Server error: %s", error.line)
            raise error

    def _buried_id(self, line: bytes, error: ServerError) -> tuple:
        """Parse ``BURIED <id>`` after a put; a bare BURIED is an error."""
        try:
            return parse_header(line, "BURIED", int)
        except MalformedResponseError:
            raise error from None

    def _parse(self, line: bytes, token: str, *types: type) -> tuple:
        try:
            return parse_header(line, token, *types)
        except MalformedResponseError as exc:
            self._broken = exc
            raise

    def _classify(
        self, line: bytes, allowed: frozenset[ErrorKind]
    ) -> ServerError | None:
        try:
            return classify(decode_line(line), allowed)
        except MalformedResponseError as exc:
            self._broken = exc
            raise

    def _check_usable(self) -> None:
        if self._closed:
            raise JackdConnectionError("Client is closed")
        if self._broken is not None:
            raise JackdConnectionError(
                f"Connection is no longer usable ({self._broken}); dial again"
            )

    # Runs without _io_lock.
    def _close_transport(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._transport.close()
