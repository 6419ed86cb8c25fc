"""Command descriptors and their exact wire encoding.

Each builder validates its arguments locally and returns a ``Command``;
``encode`` turns it into bytes. Nothing is escaped: the protocol has no
escape mechanism, which is why bodies travel with an explicit length.
"""

from dataclasses import dataclass

from .errors import InvalidTubeNameError
from .protocol import (
    DEFAULT_DELAY,
    DEFAULT_PRIORITY,
    DEFAULT_TTR,
    DELIMITER,
    ENCODING,
    MAX_TUBE_NAME,
)

# Largest value the server accepts for ids, priorities and seconds.
MAX_UINT32 = 2**32 - 1


@dataclass(frozen=True, slots=True)
class Command:
    """A single protocol command.

    Attributes:
        verb: Command name, e.g. ``"put"``.
        args: Positional arguments; ``int`` or already-validated ``str``.
        body: Payload for body-bearing commands. Its length is appended to
            ``args`` on the wire.
    """

    verb: str
    args: tuple[int | str, ...] = ()
    body: bytes | None = None

    def __repr__(self) -> str:
        body = f", body=<{len(self.body)} bytes>" if self.body is not None else ""
        return f"Command({self.verb!r}, args={self.args!r}{body})"


def encode(command: Command) -> bytes:
    """Serialize a command to the bytes written on the wire."""
    args = list(command.args)
    if command.body is not None:
        args.append(len(command.body))

    parts = [command.verb.encode(ENCODING)]
    for arg in args:
        if isinstance(arg, int):
            parts.append(str(arg).encode("ascii"))
        else:
            parts.append(arg.encode(ENCODING))

    wire = b" ".join(parts) + DELIMITER
    if command.body is not None:
        wire += command.body + DELIMITER
    return wire


# --- Validation ---


def validate_tube_name(name: str) -> str:
    """Check a tube name before it goes on the wire.

    Raises:
        InvalidTubeNameError: If the name is empty, longer than
            MAX_TUBE_NAME bytes in UTF-8, or contains whitespace.
    """
    if not isinstance(name, str):
        raise InvalidTubeNameError(f"Tube name must be str, got {type(name).__name__}")
    if not name:
        raise InvalidTubeNameError("Tube name must not be empty")
    size = len(name.encode(ENCODING))
    if size > MAX_TUBE_NAME:
        raise InvalidTubeNameError(
            f"Tube name is {size} bytes, limit is {MAX_TUBE_NAME}"
        )
    if any(ch.isspace() for ch in name):
        raise InvalidTubeNameError(f"Tube name must not contain whitespace: {name!r}")
    return name


def _uint(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value <= MAX_UINT32:
        raise ValueError(f"{name} must be 0-{MAX_UINT32}, got {value}")
    return value


def _body(body: bytes | str) -> bytes:
    if isinstance(body, str):
        return body.encode(ENCODING)
    return bytes(body)


# --- Producer commands ---


def build_put(
    body: bytes | str,
    priority: int = DEFAULT_PRIORITY,
    delay: int = DEFAULT_DELAY,
    ttr: int = DEFAULT_TTR,
) -> Command:
    """Build ``put <pri> <delay> <ttr> <bytes>`` followed by the body.

    Args:
        body: Job payload; ``str`` is encoded as UTF-8.
        priority: Lower is more urgent.
        delay: Seconds before the job becomes ready.
        ttr: Seconds a worker may hold the job before it is released.
    """
    return Command(
        "put",
        (
            _uint("priority", priority),
            _uint("delay", delay),
            _uint("ttr", ttr),
        ),
        body=_body(body),
    )


def build_use(tube: str) -> Command:
    return Command("use", (validate_tube_name(tube),))


# --- Worker commands ---


def build_reserve(timeout: int | None = None) -> Command:
    """Build ``reserve``, or ``reserve-with-timeout`` when a timeout is given."""
    if timeout is None:
        return Command("reserve")
    return Command("reserve-with-timeout", (_uint("timeout", timeout),))


def build_reserve_job(job_id: int) -> Command:
    return Command("reserve-job", (_uint("job id", job_id),))


def build_delete(job_id: int) -> Command:
    return Command("delete", (_uint("job id", job_id),))


def build_release(
    job_id: int,
    priority: int = DEFAULT_PRIORITY,
    delay: int = DEFAULT_DELAY,
) -> Command:
    return Command(
        "release",
        (_uint("job id", job_id), _uint("priority", priority), _uint("delay", delay)),
    )


def build_bury(job_id: int, priority: int = DEFAULT_PRIORITY) -> Command:
    return Command("bury", (_uint("job id", job_id), _uint("priority", priority)))


def build_touch(job_id: int) -> Command:
    return Command("touch", (_uint("job id", job_id),))


def build_watch(tube: str) -> Command:
    return Command("watch", (validate_tube_name(tube),))


def build_ignore(tube: str) -> Command:
    return Command("ignore", (validate_tube_name(tube),))


# --- Other commands ---


def build_peek(job_id: int) -> Command:
    return Command("peek", (_uint("job id", job_id),))


def build_peek_ready() -> Command:
    return Command("peek-ready")


def build_peek_delayed() -> Command:
    return Command("peek-delayed")


def build_peek_buried() -> Command:
    return Command("peek-buried")


def build_kick(bound: int) -> Command:
    """Build ``kick <bound>``: move up to ``bound`` buried/delayed jobs to ready."""
    return Command("kick", (_uint("bound", bound),))


def build_kick_job(job_id: int) -> Command:
    return Command("kick-job", (_uint("job id", job_id),))


def build_stats_job(job_id: int) -> Command:
    return Command("stats-job", (_uint("job id", job_id),))


def build_stats_tube(tube: str) -> Command:
    return Command("stats-tube", (validate_tube_name(tube),))


def build_stats() -> Command:
    return Command("stats")


def build_list_tubes() -> Command:
    return Command("list-tubes")


def build_list_tube_used() -> Command:
    return Command("list-tube-used")


def build_list_tubes_watched() -> Command:
    return Command("list-tubes-watched")


def build_pause_tube(tube: str, delay: int) -> Command:
    """Build ``pause-tube <tube> <delay>``: hold back reserves for ``delay`` seconds."""
    return Command("pause-tube", (validate_tube_name(tube), _uint("delay", delay)))


def build_quit() -> Command:
    return Command("quit")
