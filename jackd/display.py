"""Output formatting for the command-line tools.

Jobs print as text when their body is UTF-8, otherwise as a hex dump.
Stats bodies (YAML mappings) render as two-column tables.
"""

from rich.markup import escape
from rich.table import Table

from .protocol import BuriedOnInsert, Inserted, Job

# Bytes per hex dump row.
_DUMP_WIDTH = 16


def format_job(job: Job) -> str:
    """Format a reserved or peeked job as Rich markup."""
    header = f"[bold]job {job.id}[/bold] [dim]({len(job.body)} bytes)[/dim]"
    if not job.body:
        return header
    try:
        text = job.body.decode("utf-8")
    except UnicodeDecodeError:
        return header + "\n" + format_hex_dump(job.body)
    if not _printable_lines(text):
        return header + "\n" + format_hex_dump(job.body)
    return header + "\n" + escape(text)


def format_put_result(result: Inserted | BuriedOnInsert) -> str:
    if isinstance(result, BuriedOnInsert):
        return f"[yellow]buried[/yellow] job {result.id} (server out of memory)"
    return f"[green]inserted[/green] job {result.id}"


def format_hex_dump(data: bytes) -> str:
    """Format binary data as offset / hex / ASCII rows.

    Zero bytes are dimmed and CR/LF bytes are highlighted, since those are
    what break naive line-based tools.
    """
    lines = []
    for offset in range(0, len(data), _DUMP_WIDTH):
        row = data[offset : offset + _DUMP_WIDTH]
        cells = []
        for value in row:
            token = f"{value:02X}"
            if value == 0:
                cells.append(f"[dim]{token}[/dim]")
            elif value in (0x0D, 0x0A):
                cells.append(f"[bold magenta]{token}[/bold magenta]")
            else:
                cells.append(token)
        padding = "   " * (_DUMP_WIDTH - len(row))
        ascii_part = "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in row)
        lines.append(
            f"[cyan]{offset:08X}[/cyan]  {' '.join(cells)}{padding}"
            f"  [dim]|{escape(ascii_part)}|[/dim]"
        )
    return "\n".join(lines)


def stats_table(stats: dict, title: str = "stats") -> Table:
    """Build a two-column table from a decoded stats mapping."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("key", style="cyan", no_wrap=True)
    table.add_column("value", justify="right")
    for key, value in stats.items():
        table.add_row(escape(str(key)), escape(str(value)))
    return table


def format_tubes(tubes: list[str], current: str | None = None) -> str:
    """Format a tube list, marking the one in use."""
    lines = []
    for name in tubes:
        if name == current:
            lines.append(f"[bold green]* {escape(name)}[/bold green]")
        else:
            lines.append(f"  {escape(name)}")
    return "\n".join(lines)


def _printable_lines(text: str) -> bool:
    """True if every line is printable once line breaks and tabs are ignored."""
    return all(
        line.replace("\t", "").isprintable() for line in text.replace("\r\n", "\n").split("\n")
    )
