"""Synchronous client for the beanstalkd work-queue protocol."""

from .client import JackdClient, dial
from .errors import (
    ErrorKind,
    InvalidTubeNameError,
    JackdConnectionError,
    JackdError,
    MalformedResponseError,
    ServerError,
    ShortBodyError,
)
from .protocol import BuriedOnInsert, Inserted, Job

__version__ = "0.1.0"

__all__ = [
    "BuriedOnInsert",
    "ErrorKind",
    "Inserted",
    "InvalidTubeNameError",
    "JackdClient",
    "JackdConnectionError",
    "JackdError",
    "Job",
    "MalformedResponseError",
    "ServerError",
    "ShortBodyError",
    "dial",
]
