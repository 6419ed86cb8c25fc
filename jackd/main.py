"""Click entry point for jackd-cli.

A small diagnostic tool over the client library: put and reserve jobs,
inspect stats, or drop into the interactive shell.
"""

import logging
import sys
from collections.abc import Callable

import click
from rich.console import Console

from . import __version__
from .client import JackdClient, dial
from .display import format_job, format_put_result, format_tubes, stats_table
from .errors import JackdConnectionError, ServerError
from .protocol import (
    CONNECTION_TIMEOUT,
    DEFAULT_DELAY,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PRIORITY,
    DEFAULT_TTR,
    load_yaml_dict,
    load_yaml_list,
)

console = Console()


@click.group()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Server host.")
@click.option(
    "--port", default=DEFAULT_PORT, show_default=True, type=int, help="Server port."
)
@click.option(
    "--timeout",
    default=CONNECTION_TIMEOUT,
    show_default=True,
    type=float,
    help="Seconds allowed per connect, read and write (0 blocks forever).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log wire traffic.")
@click.version_option(version=__version__, prog_name="jackd-cli")
@click.pass_context
def cli(ctx: click.Context, host: str, port: int, timeout: float, verbose: bool) -> None:
    """Talk to a beanstalkd server."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
    ctx.obj = {"host": host, "port": port, "timeout": timeout or None}


def _run(ctx: click.Context, action: Callable[[JackdClient], object]) -> None:
    """Dial, run one action, print its result and close."""
    opts = ctx.obj
    try:
        client = dial(opts["host"], opts["port"], opts["timeout"])
    except JackdConnectionError as exc:
        console.print(f"[red]Connection failed:[/red] {exc}")
        sys.exit(1)

    try:
        with client:
            result = action(client)
    except ServerError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    except JackdConnectionError as exc:
        console.print(f"[red]Connection lost:[/red] {exc}")
        sys.exit(1)
    except ValueError as exc:
        console.print(f"[red]Invalid argument:[/red] {exc}")
        sys.exit(2)

    if result is not None:
        console.print(result, highlight=False)


@cli.command()
@click.argument("body")
@click.option("--tube", default=None, help="Tube to put into.")
@click.option("--priority", default=DEFAULT_PRIORITY, show_default=True, type=int)
@click.option("--delay", default=DEFAULT_DELAY, show_default=True, type=int)
@click.option("--ttr", default=DEFAULT_TTR, show_default=True, type=int)
@click.pass_context
def put(
    ctx: click.Context, body: str, tube: str | None, priority: int, delay: int, ttr: int
) -> None:
    """Put a job whose body is BODY."""

    def action(client: JackdClient):
        if tube:
            client.use(tube)
        return format_put_result(client.put(body, priority, delay, ttr))

    _run(ctx, action)


@cli.command()
@click.option("--tube", default=None, help="Watch this tube instead of default.")
@click.option(
    "--timeout", "wait", default=None, type=int, help="Give up after this many seconds."
)
@click.option("--delete", "delete_after", is_flag=True, help="Delete the job once shown.")
@click.pass_context
def reserve(
    ctx: click.Context, tube: str | None, wait: int | None, delete_after: bool
) -> None:
    """Reserve a job and print it."""

    def action(client: JackdClient):
        if tube:
            client.watch(tube)
            if tube != "default":
                client.ignore("default")
        job = client.reserve(wait)
        if delete_after:
            client.delete(job.id)
        return format_job(job)

    _run(ctx, action)


@cli.command()
@click.argument("job_id", required=False, type=int)
@click.option(
    "--state",
    type=click.Choice(["ready", "delayed", "buried"]),
    default=None,
    help="Peek the next job in this state instead of by id.",
)
@click.option("--tube", default=None, help="Tube to peek into (with --state).")
@click.pass_context
def peek(ctx: click.Context, job_id: int | None, state: str | None, tube: str | None) -> None:
    """Show a job by JOB_ID, or the next one in a state."""
    if (job_id is None) == (state is None):
        raise click.UsageError("Give either JOB_ID or --state")

    def action(client: JackdClient):
        if job_id is not None:
            return format_job(client.peek(job_id))
        if tube:
            client.use(tube)
        return format_job(getattr(client, f"peek_{state}")())

    _run(ctx, action)


@cli.command()
@click.argument("job_id", type=int)
@click.pass_context
def delete(ctx: click.Context, job_id: int) -> None:
    """Delete the job JOB_ID."""

    def action(client: JackdClient):
        client.delete(job_id)
        return f"deleted job {job_id}"

    _run(ctx, action)


@cli.command()
@click.argument("bound", type=int)
@click.option("--tube", default=None, help="Tube to kick in.")
@click.pass_context
def kick(ctx: click.Context, bound: int, tube: str | None) -> None:
    """Kick up to BOUND buried or delayed jobs."""

    def action(client: JackdClient):
        if tube:
            client.use(tube)
        return f"kicked {client.kick(bound)} job(s)"

    _run(ctx, action)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show server statistics."""
    _run(ctx, lambda client: stats_table(load_yaml_dict(client.stats())))


@cli.command("stats-tube")
@click.argument("tube")
@click.pass_context
def stats_tube(ctx: click.Context, tube: str) -> None:
    """Show statistics for TUBE."""
    _run(
        ctx,
        lambda client: stats_table(load_yaml_dict(client.stats_tube(tube)), f"tube {tube}"),
    )


@cli.command("stats-job")
@click.argument("job_id", type=int)
@click.pass_context
def stats_job(ctx: click.Context, job_id: int) -> None:
    """Show statistics for the job JOB_ID."""
    _run(
        ctx,
        lambda client: stats_table(
            load_yaml_dict(client.stats_job(job_id)), f"job {job_id}"
        ),
    )


@cli.command("list-tubes")
@click.pass_context
def list_tubes(ctx: click.Context) -> None:
    """List every tube on the server."""

    def action(client: JackdClient):
        tubes = load_yaml_list(client.list_tubes())
        return format_tubes(tubes, current=client.list_tube_used())

    _run(ctx, action)


@cli.command()
@click.pass_context
def shell(ctx: click.Context) -> None:
    """Open an interactive shell on one connection."""
    from .shell import run_shell

    opts = ctx.obj
    try:
        client = dial(opts["host"], opts["port"], opts["timeout"])
    except JackdConnectionError as exc:
        console.print(f"[red]Connection failed:[/red] {exc}")
        sys.exit(1)

    console.print(
        f"[bold]jackd[/bold] connected to {opts['host']}:{opts['port']}", highlight=False
    )
    console.print("[dim]Type help for commands, quit to exit[/dim]")
    run_shell(client)
