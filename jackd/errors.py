"""Error taxonomy and reply classification.

Every error reply the server can send maps to one ``ErrorKind``. Callers
match on the kind, never on the wire token.
"""

import enum
import re
from types import MappingProxyType


class ErrorKind(enum.Enum):
    """Protocol-level rejections, keyed by their wire token."""

    # Generic: any command can get these.
    OUT_OF_MEMORY = "out of memory"
    INTERNAL_ERROR = "internal error"
    BAD_FORMAT = "bad format"
    UNKNOWN_COMMAND = "unknown command"

    # reserve
    DEADLINE_SOON = "deadline soon"
    TIMED_OUT = "timed out"

    # put (BURIED also for release)
    BURIED = "job buried"
    EXPECTED_CRLF = "put command expects CRLF"
    JOB_TOO_BIG = "job is too big"
    DRAINING = "server is draining"

    # id- and tube-addressed commands
    NOT_FOUND = "not found"

    # ignore
    NOT_IGNORED = "tube not ignored"

    @property
    def token(self) -> str:
        return self.name


# Any command can get these. Checked in this order, before the kinds the
# command allows.
GENERIC_ERRORS = (
    ErrorKind.OUT_OF_MEMORY,
    ErrorKind.INTERNAL_ERROR,
    ErrorKind.BAD_FORMAT,
    ErrorKind.UNKNOWN_COMMAND,
)

TOKEN_KINDS = MappingProxyType({kind.token: kind for kind in ErrorKind})


# --- Exceptions ---


class JackdError(Exception):
    """Base class for everything this package raises about the server."""


class ServerError(JackdError):
    """Raised when the server answers with an error reply.

    The reply was well-formed, so the connection stays usable.

    Attributes:
        kind: The classified ``ErrorKind``, or None for a token outside the
            known taxonomy.
        token: The raw status token.
        line: The full reply header.
    """

    def __init__(self, kind: ErrorKind | None, token: str, line: str = "") -> None:
        self.kind = kind
        self.token = token
        self.line = line or token
        message = kind.value if kind is not None else f"server error: {self.line}"
        super().__init__(message)


class JackdConnectionError(JackdError):
    """Raised when the transport fails or the reply stream can't be parsed.

    The connection can't be trusted after this; dial a new one.
    """


class MalformedResponseError(JackdConnectionError):
    """Raised when a reply doesn't match the grammar the command expects."""

    def __init__(self, line: bytes, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed response {line[:80]!r}: {reason}")


class ShortBodyError(JackdConnectionError):
    """Raised when the stream ends before a declared body is complete."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Connection closed after {received} of {expected} body bytes"
        )


class InvalidTubeNameError(ValueError):
    """Raised for a tube name the server would reject. Nothing is sent."""


# --- Classification ---


# Status tokens that open a successful reply. Anything else is error-shaped.
SUCCESS_TOKENS = frozenset(
    {
        "INSERTED",
        "USING",
        "RESERVED",
        "DELETED",
        "RELEASED",
        "BURIED",
        "TOUCHED",
        "WATCHING",
        "FOUND",
        "KICKED",
        "OK",
        "PAUSED",
    }
)

_STATUS_WORD = re.compile(r"[A-Z_]+")


def classify(
    line: str,
    allowed: frozenset[ErrorKind] = frozenset(),
) -> ServerError | None:
    """Decide whether a reply header is an error.

    Generic errors are always recognized; ``allowed`` adds the kinds that
    are meaningful for the command that was sent. Matching is by prefix
    because some error replies carry arguments (``BURIED <id>``).

    A known error token the command doesn't allow (``NOT_FOUND`` after
    ``watch``) and a token outside the taxonomy both come back as a
    ``ServerError`` with ``kind=None`` carrying the raw token.

    Args:
        line: Decoded reply header, delimiter removed.
        allowed: Extra error kinds accepted for this command.

    Returns:
        A ``ServerError`` to raise, or None when the reply is a success
        status the caller should parse.

    Raises:
        MalformedResponseError: The header is empty or its first word
            isn't an upper-case status token.
    """
    token = line.split(" ", 1)[0]
    if not _STATUS_WORD.fullmatch(token):
        raise MalformedResponseError(
            line.encode("utf-8"), "reply does not start with a status word"
        )

    for kind in GENERIC_ERRORS:
        if line.startswith(kind.token):
            return ServerError(kind, kind.token, line)
    for kind_token, kind in TOKEN_KINDS.items():
        if kind in allowed and line.startswith(kind_token):
            return ServerError(kind, kind_token, line)

    if token not in SUCCESS_TOKENS:
        return ServerError(None, token, line)
    return None
