"""Interactive shell: one connection, one protocol command per line.

Each input line is a verb followed by its arguments, e.g.::

    jackd> use emails
    jackd> put hello world
    jackd> reserve 5
    jackd> delete 12

``put`` takes the rest of the line as the job body.
"""

from collections.abc import Callable

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from rich.console import Console

from .client import JackdClient
from .display import format_job, format_put_result, format_tubes, stats_table
from .errors import JackdConnectionError, JackdError
from .history import get_history
from .protocol import load_yaml_dict, load_yaml_list

console = Console()

# Sentinel return value for the loop
QUIT = object()

PROMPT = "jackd> "

SHELL_HELP = """\
[bold]Producer[/bold]   put <body...> | use <tube>
[bold]Worker[/bold]     reserve [timeout] | reserve-job <id> | delete <id>
           release <id> [pri] [delay] | bury <id> [pri] | touch <id>
           watch <tube> | ignore <tube>
[bold]Inspect[/bold]    peek <id> | peek-ready | peek-delayed | peek-buried
           kick <bound> | kick-job <id> | pause-tube <tube> <delay>
           stats | stats-job <id> | stats-tube <tube>
           list-tubes | list-tube-used | list-tubes-watched
[bold]Shell[/bold]      help | quit"""


def run_shell(client: JackdClient) -> None:
    """Run the interactive loop until quit, Ctrl-D or a dead connection."""
    session: PromptSession = PromptSession(history=get_history())
    completer = WordCompleter(sorted(_HANDLERS) + ["help", "quit"], sentence=True)

    try:
        while True:
            try:
                line = session.prompt(PROMPT, completer=completer)
            except EOFError:
                console.print("Goodbye")
                break
            except KeyboardInterrupt:
                continue

            try:
                result = dispatch(client, line)
            except JackdConnectionError as exc:
                console.print(f"[red]Connection lost:[/red] {exc}")
                break
            except (JackdError, ValueError) as exc:
                console.print(f"[red]Error:[/red] {exc}")
                continue

            if result is QUIT:
                console.print("Goodbye")
                break
            if result is not None:
                console.print(result, highlight=False)
    finally:
        client.close()


def dispatch(client: JackdClient, line: str):
    """Run one shell line against the client.

    Returns:
        Something printable (markup string or Rich renderable), the QUIT
        sentinel, or None when there is nothing to show.

    Raises:
        ValueError: Unknown verb or bad arguments.
        JackdError: Whatever the client raises.
    """
    trimmed = line.strip()
    if not trimmed:
        return None

    verb, _, rest = trimmed.partition(" ")
    verb = verb.lower()

    if verb == "quit":
        client.quit()
        return QUIT
    if verb == "help":
        return SHELL_HELP

    handler = _HANDLERS.get(verb)
    if handler is None:
        raise ValueError(f"Unknown command {verb!r}; try 'help'")
    return handler(client, rest.strip())


# --- Argument helpers ---


def _ints(args: str, names: tuple[str, ...], required: int) -> list[int]:
    parts = args.split()
    if not required <= len(parts) <= len(names):
        usage = " ".join(
            f"<{n}>" if i < required else f"[{n}]" for i, n in enumerate(names)
        )
        raise ValueError(f"Expected {usage}")
    try:
        return [int(p) for p in parts]
    except ValueError:
        raise ValueError(f"Arguments must be integers: {args!r}") from None


def _tube(args: str) -> str:
    parts = args.split()
    if len(parts) != 1:
        raise ValueError("Expected <tube>")
    return parts[0]


# --- Handlers ---


def _put(client: JackdClient, args: str):
    if not args:
        raise ValueError("Expected <body...>")
    return format_put_result(client.put(args))


def _reserve(client: JackdClient, args: str):
    values = _ints(args, ("timeout",), 0)
    return format_job(client.reserve(values[0] if values else None))


def _reserve_job(client: JackdClient, args: str):
    (job_id,) = _ints(args, ("id",), 1)
    return format_job(client.reserve_job(job_id))


def _delete(client: JackdClient, args: str):
    (job_id,) = _ints(args, ("id",), 1)
    client.delete(job_id)
    return f"deleted job {job_id}"


def _release(client: JackdClient, args: str):
    values = _ints(args, ("id", "pri", "delay"), 1)
    client.release(*values)
    return f"released job {values[0]}"


def _bury(client: JackdClient, args: str):
    values = _ints(args, ("id", "pri"), 1)
    client.bury(*values)
    return f"buried job {values[0]}"


def _touch(client: JackdClient, args: str):
    (job_id,) = _ints(args, ("id",), 1)
    client.touch(job_id)
    return f"touched job {job_id}"


def _use(client: JackdClient, args: str):
    return f"using {client.use(_tube(args))}"


def _watch(client: JackdClient, args: str):
    return f"watching {client.watch(_tube(args))} tube(s)"


def _ignore(client: JackdClient, args: str):
    return f"watching {client.ignore(_tube(args))} tube(s)"


def _peek(client: JackdClient, args: str):
    (job_id,) = _ints(args, ("id",), 1)
    return format_job(client.peek(job_id))


def _peeker(method: str) -> Callable[[JackdClient, str], str]:
    def handler(client: JackdClient, args: str) -> str:
        return format_job(getattr(client, method)())

    return handler


def _kick(client: JackdClient, args: str):
    (bound,) = _ints(args, ("bound",), 1)
    return f"kicked {client.kick(bound)} job(s)"


def _kick_job(client: JackdClient, args: str):
    (job_id,) = _ints(args, ("id",), 1)
    client.kick_job(job_id)
    return f"kicked job {job_id}"


def _pause_tube(client: JackdClient, args: str):
    parts = args.split()
    if len(parts) != 2:
        raise ValueError("Expected <tube> <delay>")
    (delay,) = _ints(parts[1], ("delay",), 1)
    client.pause_tube(parts[0], delay)
    return f"paused {parts[0]} for {delay}s"


def _stats(client: JackdClient, args: str):
    return stats_table(load_yaml_dict(client.stats()))


def _stats_job(client: JackdClient, args: str):
    (job_id,) = _ints(args, ("id",), 1)
    return stats_table(load_yaml_dict(client.stats_job(job_id)), f"job {job_id}")


def _stats_tube(client: JackdClient, args: str):
    tube = _tube(args)
    return stats_table(load_yaml_dict(client.stats_tube(tube)), f"tube {tube}")


def _list_tubes(client: JackdClient, args: str):
    return format_tubes(load_yaml_list(client.list_tubes()))


def _list_tube_used(client: JackdClient, args: str):
    return client.list_tube_used()


def _list_tubes_watched(client: JackdClient, args: str):
    return format_tubes(load_yaml_list(client.list_tubes_watched()))


_HANDLERS: dict[str, Callable[[JackdClient, str], object]] = {
    "put": _put,
    "use": _use,
    "reserve": _reserve,
    "reserve-job": _reserve_job,
    "delete": _delete,
    "release": _release,
    "bury": _bury,
    "touch": _touch,
    "watch": _watch,
    "ignore": _ignore,
    "peek": _peek,
    "peek-ready": _peeker("peek_ready"),
    "peek-delayed": _peeker("peek_delayed"),
    "peek-buried": _peeker("peek_buried"),
    "kick": _kick,
    "kick-job": _kick_job,
    "pause-tube": _pause_tube,
    "stats": _stats,
    "stats-job": _stats_job,
    "stats-tube": _stats_tube,
    "list-tubes": _list_tubes,
    "list-tube-used": _list_tube_used,
    "list-tubes-watched": _list_tubes_watched,
}
