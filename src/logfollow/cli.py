from __future__ import annotations
import json
import logging
import threading
from typing import Optional
import typer
from rich.console import Console
from rich.logging import RichHandler
from .config import LOG_LEVELS, Config, load_config
from .errors import CloseError, FollowerError
from .follower import Follower, follow
from .sources.file_follow import iter_lines

app = typer.Typer(help="logfollow - follow a growing file like tail -f")
console = Console()
err_console = Console(stderr=True)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=logging.getLevelName(level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _emit(line_no: int, line: str, *, json_out: bool, number: bool) -> None:
    text = line.rstrip("\n")
    if json_out:
        print(json.dumps({"line_no": line_no, "line": text}, ensure_ascii=False))
    elif number:
        console.print(f"{line_no:>6}  {text}", markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


def _close_quietly(follower: Follower) -> None:
    try:
        follower.close()
    except CloseError as e:
        console.print(f"[bold yellow]Warning:[/bold yellow] {e}")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Logging level (overrides log_level from the config)"
    ),
):
    if log_level is not None and log_level.upper() not in LOG_LEVELS:
        raise typer.BadParameter(f"expected one of: {', '.join(LOG_LEVELS)}", param_hint="--log-level")
    ctx.obj = log_level


@app.command("follow")
def follow_cmd(
    ctx: typer.Context,
    file: str = typer.Option(..., "--file", "-f", help="Path to the file to follow (tail -f)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to follow YAML"),
    from_start: bool = typer.Option(False, "--from-start", help="Read file from beginning (default: follow new writes only)"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON lines (one object per line)"),
    number: bool = typer.Option(False, "--number", "-n", help="Prefix every line with its line number"),
    duration: Optional[float] = typer.Option(None, "--duration", help="Stop following after this many seconds"),
):
    """
    Print lines appended to a file as they arrive.

    Rotation by move-and-recreate is followed; truncation or removal of the
    file stops with an error.
    """
    try:
        cfg: Config = load_config(config)
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}", style="red")
        raise typer.Exit(1)

    _setup_logging(ctx.obj or cfg.log_level)

    try:
        follower = follow(
            file,
            from_start=(from_start or cfg.from_start),
            buffer_size=cfg.buffer_size,
            rename_grace=cfg.rename_grace,
        )
    except FileNotFoundError:
        console.print(
            f"[bold red]Error:[/bold red] File not found: {file}\n"
            f"Please check the file path and try again",
            style="red",
        )
        raise typer.Exit(1)
    except PermissionError:
        console.print(
            f"[bold red]Error:[/bold red] Permission denied: {file}\n"
            f"Please ensure you have read permission for this file",
            style="red",
        )
        raise typer.Exit(1)
    except (FollowerError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(1)

    timer: Optional[threading.Timer] = None
    if duration is not None:
        timer = threading.Timer(duration, follower.close)
        timer.daemon = True
        timer.start()

    if not json_out:
        console.print(f"[green]Following[/green] {file}  (Ctrl+C to stop)")

    failed = False
    try:
        for line_no, line in iter_lines(follower, encoding=cfg.encoding, errors=cfg.errors):
            _emit(line_no, line, json_out=json_out, number=number)
    except (FollowerError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        failed = True
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")
    finally:
        if timer is not None:
            timer.cancel()
        _close_quietly(follower)

    if failed:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
