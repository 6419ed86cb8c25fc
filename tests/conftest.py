"""Shared test fixtures for the jackd test suite.

Two in-memory transports stand in for a socket:

- ``ScriptedTransport`` replays canned reply bytes and records what the
  client wrote.
- ``FakeBeanstalkd`` answers a useful subset of the protocol from an
  in-memory job table, so put/reserve round trips exercise the real
  framing code.
"""

import io

import pytest
import yaml

from jackd.client import JackdClient


class ScriptedTransport:
    """Replays ``replies`` in chunks of ``chunk_size`` bytes."""

    def __init__(self, replies: bytes = b"", chunk_size: int = 4096) -> None:
        self._stream = io.BytesIO(replies)
        self._chunk_size = chunk_size
        self._pending = bytearray()
        self.written = b""
        self.flushes = 0
        self.closed = 0
        self.read_error: Exception | None = None

    def read(self, max_bytes: int) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        return self._stream.read(min(max_bytes, self._chunk_size))

    def write(self, data: bytes) -> None:
        self._pending += data

    def flush(self) -> None:
        self.written += bytes(self._pending)
        self._pending.clear()
        self.flushes += 1

    def close(self) -> None:
        self.closed += 1


class FakeBeanstalkd:
    """Minimal in-memory beanstalkd speaking the wire protocol."""

    def __init__(self, chunk_size: int = 7) -> None:
        self._inbox = bytearray()
        self._outbox = bytearray()
        self._chunk_size = chunk_size
        self.jobs: dict[int, dict] = {}
        self.next_id = 1
        self.using = "default"
        self.watching = ["default"]
        self.commands: list[str] = []
        self.closed = False

    # --- Transport interface ---

    def read(self, max_bytes: int) -> bytes:
        size = min(max_bytes, self._chunk_size, len(self._outbox))
        data = bytes(self._outbox[:size])
        del self._outbox[:size]
        return data

    def write(self, data: bytes) -> None:
        self._inbox += data

    def flush(self) -> None:
        while self._inbox:
            index = self._inbox.find(b"\r\n")
            header = bytes(self._inbox[:index]).decode()
            del self._inbox[: index + 2]
            self.commands.append(header)
            verb, *args = header.split(" ")
            if verb == "put":
                length = int(args[3])
                body = bytes(self._inbox[:length])
                if self._inbox[length : length + 2] != b"\r\n":
                    self._outbox += b"EXPECTED_CRLF\r\n"
                    continue
                del self._inbox[: length + 2]
                self._outbox += self._put(int(args[0]), body)
            elif verb == "quit":
                self.closed = True
            else:
                handler = getattr(self, "_" + verb.replace("-", "_"), None)
                if handler is None:
                    self._outbox += b"UNKNOWN_COMMAND\r\n"
                else:
                    self._outbox += handler(*args)

    def close(self) -> None:
        self.closed = True

    # --- Commands ---

    def _put(self, priority: int, body: bytes) -> bytes:
        job_id = self.next_id
        self.next_id += 1
        self.jobs[job_id] = {
            "tube": self.using,
            "body": body,
            "state": "ready",
            "pri": priority,
        }
        return f"INSERTED {job_id}\r\n".encode()

    def _job_reply(self, token: str, job_id: int) -> bytes:
        body = self.jobs[job_id]["body"]
        return f"{token} {job_id} {len(body)}\r\n".encode() + body + b"\r\n"

    def _reserve(self) -> bytes:
        for job_id, job in sorted(self.jobs.items()):
            if job["state"] == "ready" and job["tube"] in self.watching:
                job["state"] = "reserved"
                return self._job_reply("RESERVED", job_id)
        return b"TIMED_OUT\r\n"

    def _reserve_with_timeout(self, seconds: str) -> bytes:
        return self._reserve()

    def _reserve_job(self, job_id: str) -> bytes:
        job = self.jobs.get(int(job_id))
        if job is None:
            return b"NOT_FOUND\r\n"
        job["state"] = "reserved"
        return self._job_reply("RESERVED", int(job_id))

    def _delete(self, job_id: str) -> bytes:
        if self.jobs.pop(int(job_id), None) is None:
            return b"NOT_FOUND\r\n"
        return b"DELETED\r\n"

    def _release(self, job_id: str, priority: str, delay: str) -> bytes:
        job = self.jobs.get(int(job_id))
        if job is None or job["state"] != "reserved":
            return b"NOT_FOUND\r\n"
        job["state"] = "ready"
        return b"RELEASED\r\n"

    def _bury(self, job_id: str, priority: str) -> bytes:
        job = self.jobs.get(int(job_id))
        if job is None or job["state"] != "reserved":
            return b"NOT_FOUND\r\n"
        job["state"] = "buried"
        return b"BURIED\r\n"

    def _kick(self, bound: str) -> bytes:
        kicked = 0
        for job in self.jobs.values():
            if kicked < int(bound) and job["state"] == "buried" and job["tube"] == self.using:
                job["state"] = "ready"
                kicked += 1
        return f"KICKED {kicked}\r\n".encode()

    def _peek(self, job_id: str) -> bytes:
        if int(job_id) not in self.jobs:
            return b"NOT_FOUND\r\n"
        return self._job_reply("FOUND", int(job_id))

    def _peek_state(self, state: str) -> bytes:
        for job_id, job in sorted(self.jobs.items()):
            if job["state"] == state and job["tube"] == self.using:
                return self._job_reply("FOUND", job_id)
        return b"NOT_FOUND\r\n"

    def _peek_ready(self) -> bytes:
        return self._peek_state("ready")

    def _peek_buried(self) -> bytes:
        return self._peek_state("buried")

    def _use(self, tube: str) -> bytes:
        self.using = tube
        return f"USING {tube}\r\n".encode()

    def _watch(self, tube: str) -> bytes:
        if tube not in self.watching:
            self.watching.append(tube)
        return f"WATCHING {len(self.watching)}\r\n".encode()

    def _ignore(self, tube: str) -> bytes:
        if self.watching == [tube]:
            return b"NOT_IGNORED\r\n"
        if tube in self.watching:
            self.watching.remove(tube)
        return f"WATCHING {len(self.watching)}\r\n".encode()

    def _list_tube_used(self) -> bytes:
        return f"USING {self.using}\r\n".encode()

    def _ok(self, data) -> bytes:
        body = yaml.safe_dump(data, explicit_start=True).encode()
        return f"OK {len(body)}\r\n".encode() + body + b"\r\n"

    def _list_tubes(self) -> bytes:
        tubes = {"default", self.using, *self.watching}
        tubes.update(job["tube"] for job in self.jobs.values())
        return self._ok(sorted(tubes))

    def _list_tubes_watched(self) -> bytes:
        return self._ok(list(self.watching))

    def _stats(self) -> bytes:
        ready = sum(1 for job in self.jobs.values() if job["state"] == "ready")
        return self._ok({"current-jobs-ready": ready, "total-jobs": self.next_id - 1})

    def _stats_job(self, job_id: str) -> bytes:
        job = self.jobs.get(int(job_id))
        if job is None:
            return b"NOT_FOUND\r\n"
        return self._ok({"id": int(job_id), "tube": job["tube"], "state": job["state"]})


@pytest.fixture
def fake_server():
    """An empty in-memory server that replies in 7-byte chunks."""
    return FakeBeanstalkd()


@pytest.fixture
def client(fake_server):
    """A client connected to ``fake_server``."""
    return JackdClient(fake_server)


@pytest.fixture
def scripted():
    """Factory: ``scripted(b"REPLY\\r\\n")`` -> (client, transport)."""

    def make(replies: bytes = b"", chunk_size: int = 4096):
        transport = ScriptedTransport(replies, chunk_size)
        return JackdClient(transport), transport

    return make
