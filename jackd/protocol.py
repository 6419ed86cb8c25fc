"""Protocol constants and reply parsing for the beanstalkd work-queue protocol.

Commands and reply headers are single lines terminated by CRLF. Replies that
carry data (jobs, stats) declare a byte length in the header and are followed
by exactly that many raw bytes plus a trailing CRLF.
"""

from dataclasses import dataclass

import yaml

from .errors import MalformedResponseError

# --- Wire format ---

DELIMITER = b"\r\n"
ENCODING = "utf-8"

# Tube names longer than this are rejected before anything is sent.
MAX_TUBE_NAME = 200

# --- Connection defaults ---

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 11300

# --- Connect timeout (seconds) ---

CONNECTION_TIMEOUT = 5.0

# --- Buffer size ---

MAX_RECV = 65536

# --- Job defaults ---

DEFAULT_PRIORITY = 0
DEFAULT_DELAY = 0
DEFAULT_TTR = 60


# --- Results ---


@dataclass(frozen=True, slots=True)
class Job:
    """A job returned by reserve or peek.

    Attributes:
        id: Server-assigned job id.
        body: The job payload, byte-for-byte as it was put.
    """

    id: int
    body: bytes


@dataclass(frozen=True, slots=True)
class Inserted:
    """The job was created and is ready or delayed."""

    id: int


@dataclass(frozen=True, slots=True)
class BuriedOnInsert:
    """The job was created but the server buried it immediately.

    This happens when the server runs out of memory growing its priority
    queue. The job exists and can be kicked later.
    """

    id: int


# --- Header parsing ---


def decode_line(line: bytes) -> str:
    """Decode a reply header line, rejecting anything that isn't UTF-8."""
    try:
        return line.decode(ENCODING)
    except UnicodeDecodeError as exc:
        raise MalformedResponseError(line, "header is not valid UTF-8") from exc


def parse_header(line: bytes, token: str, *types: type) -> tuple:
    """Split a reply header and convert each field to its expected type.

    The header must be exactly ``token`` followed by one field per entry in
    ``types``, separated by single spaces. ``int`` fields must be plain
    non-negative decimals.

    Args:
        line: The raw header line, delimiter already removed.
        token: Expected status token, e.g. ``"RESERVED"``.
        types: ``int`` or ``str`` for each field after the token.

    Returns:
        The converted fields as a tuple (empty when ``types`` is empty).

    Raises:
        MalformedResponseError: If the token, field count or a field value
            doesn't match.
    """
    parts = decode_line(line).split(" ")
    if parts[0] != token:
        raise MalformedResponseError(line, f"expected {token}")
    fields = parts[1:]
    if len(fields) != len(types):
        raise MalformedResponseError(
            line, f"expected {len(types)} field(s) after {token}, got {len(fields)}"
        )

    values = []
    for field, kind in zip(fields, types):
        if kind is int:
            if not field.isdigit() or not field.isascii():
                raise MalformedResponseError(line, f"not a number: {field!r}")
            values.append(int(field))
        else:
            if not field:
                raise MalformedResponseError(line, "empty field")
            values.append(field)
    return tuple(values)


# --- Body decoding ---


def load_yaml_dict(body: bytes) -> dict:
    """Decode a stats body (a YAML mapping) into a dict."""
    data = _load_yaml(body)
    if not isinstance(data, dict):
        raise MalformedResponseError(body, "expected a YAML mapping")
    return data


def load_yaml_list(body: bytes) -> list[str]:
    """Decode a list-tubes body (a YAML sequence) into a list of names."""
    data = _load_yaml(body)
    if not isinstance(data, list):
        raise MalformedResponseError(body, "expected a YAML sequence")
    return [str(item) for item in data]


def _load_yaml(body: bytes):
    try:
        return yaml.safe_load(body)
    except yaml.YAMLError as exc:
        raise MalformedResponseError(body, f"invalid YAML: {exc}") from exc
