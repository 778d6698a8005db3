from __future__ import annotations

import argparse
import logging
import os
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter
from safe_code_runner import (
    BinaryStatus,
    ExecutionResult,
    RejectedBeforeExecution,
    execute_code,
    get_binary_statuses,
    load_settings,
    supported_languages,
)
from safe_code_runner.execution.probe import log_binary_statuses

_CONSOLE = Console(no_color=False)
_ERR_CONSOLE = Console(stderr=True)

REJECTED_EXIT_CODE = 2


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m scr")
        ```
    """

    def error(self, message: str) -> Never:
        """Show the usage error in a red panel, print help and exit with status 2.

        Example:
            ```python
            # parser.error("--input and --input-file are mutually exclusive")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def configure_logging(level: str | None) -> None:
    """Route library logging through Rich on stderr.

    Example:
        ```python
        configure_logging("INFO")
        ```
    """
    name = (level or os.environ.get("LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_ERR_CONSOLE, show_path=False)],
        force=True,
    )


def _language_for(path: Path) -> str | None:
    suffix = path.suffix.lower()
    for info in supported_languages():
        if info.extension == suffix:
            return info.id
    return None


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running snippets and checking toolchains.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m scr",
        description=(
            "safe-code-runner CLI\n"
            "Run code snippets through the local toolchains in a throwaway directory.\n"
            "Content filters are best-effort; this is not an isolation boundary."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m scr run hello.py\n"
            "  python -m scr run main.c --input '3 4'\n"
            "  python -m scr run Solution.java --input-file cases/1.txt --timeout 5\n"
            "  python -m scr doctor\n"
            "  python -m scr languages"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: $LOG_LEVEL or WARNING).",
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a settings TOML file.\n"
            "SCR_* environment variables still override its values."
        ),
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute one source file.",
        description=(
            "Execute a source file and print its captured output.\n"
            "The exit status mirrors the program's exit code."
        ),
        epilog=(
            "Examples:\n"
            "  python -m scr run script.js\n"
            "  python -m scr run snippet.txt --language php"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("file", help="Source file to execute.")
    run_cmd.add_argument(
        "-l",
        "--language",
        help="Language id (default: inferred from the file extension).",
    )
    stdin_group = run_cmd.add_mutually_exclusive_group()
    stdin_group.add_argument("--input", help="Text written to the program's standard input.")
    stdin_group.add_argument("--input-file", help="File whose contents are written to standard input.")
    run_cmd.add_argument(
        "--timeout",
        type=float,
        help="Wall-clock limit per stage in seconds (default: from settings).",
    )
    run_cmd.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log toolchain availability before running.",
    )

    sub.add_parser(
        "doctor",
        help="Report which toolchains are installed.",
        description=(
            "Probe every compiler and interpreter the supported languages need.\n"
            "Exits with status 1 when any of them is missing."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    sub.add_parser(
        "languages",
        help="List supported languages.",
        description="Show supported language ids, versions and file extensions.",
        formatter_class=_HELP_FORMATTER,
    )
    return parser


def _print_result(result: ExecutionResult) -> None:
    """Render captured streams and the exit status.

    Example:
        ```python
        _print_result(ExecutionResult("OK", "", 0, 10.0))
        ```
    """
    if result.stdout:
        _CONSOLE.print(Panel(Text(result.stdout), title="stdout", border_style="green", expand=False))
    if result.stderr:
        _CONSOLE.print(Panel(Text(result.stderr), title="stderr", border_style="red", expand=False))
    style = "bold green" if result.ok else "bold red"
    detail = f" ({result.failure.value})" if result.failure else ""
    _CONSOLE.print(
        f"[{style}]exit code {result.exit_code}{detail}[/{style}] in {result.duration_ms:.0f}ms"
    )


def _print_statuses(rows: list[BinaryStatus]) -> None:
    table = Table(title="Toolchains")
    table.add_column("Tool", style="cyan")
    table.add_column("Path", style="magenta")
    table.add_column("Available")
    table.add_column("Version / Error")
    for row in rows:
        if row.available:
            detail = row.version.splitlines()[0] if row.version else ""
            mark = "[green]yes[/green]"
        else:
            detail = f"{escape(row.error)}\n[dim]{escape(row.hint)}[/dim]"
            mark = "[red]no[/red]"
        table.add_row(row.name, row.path, mark, detail)
    _CONSOLE.print(table)


def _print_languages() -> None:
    table = Table(title="Supported Languages")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Version")
    table.add_column("Extension")
    for info in supported_languages():
        table.add_row(info.id, info.name, info.version, info.extension)
    _CONSOLE.print(table)


def _run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    if args.timeout is not None:
        settings = replace(settings, timeout_seconds=args.timeout)
    if args.verbose:
        log_binary_statuses(get_binary_statuses(settings=settings))

    path = Path(args.file)
    language = args.language or _language_for(path)
    if language is None:
        _CONSOLE.print(
            Panel.fit(f"Cannot infer language from '{escape(path.name)}'; pass --language", style="bold red")
        )
        return REJECTED_EXIT_CODE
    input_text = args.input
    if args.input_file:
        input_text = Path(args.input_file).read_text(encoding="utf-8")

    try:
        result = execute_code(
            path.read_text(encoding="utf-8"),
            language,
            input_text,
            settings=settings,
        )
    except RejectedBeforeExecution as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Rejected:[/bold red] {escape(exc.reason)}", border_style="red"))
        return REJECTED_EXIT_CODE
    _print_result(result)
    return result.exit_code if result.exit_code is not None else 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `scr` CLI command handler.

    Example:
        ```python
        code = main(["run", "hello.py"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.log_level)

    if args.command == "run":
        return _run(args)
    if args.command == "doctor":
        statuses = get_binary_statuses(settings=load_settings(args.config))
        _print_statuses(statuses)
        return 0 if all(s.available for s in statuses) else 1
    if args.command == "languages":
        _print_languages()
        return 0

    parser.error("Unhandled command")
