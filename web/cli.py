"""
CLI entry point for the Bedrock Remote server.

Run:  python -m web [--port 8787] [--workspace /path/to/workspace]
"""

import argparse
import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from config import app_config, get_credentials_info, get_model_name, model_config


def _setup_logging(level: str) -> None:
    """Root handler: rich output on a terminal, plain lines otherwise (e.g. under systemd)."""
    if sys.stderr.isatty():
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def _print_banner(console: Console, host: str, port: int) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("URL", f"http://{host}:{port}")
    table.add_row("Workspace", app_config.workspace_path or "(not set)")
    table.add_row("Model", f"{get_model_name(model_config.model_id)} ({model_config.model_id})")
    table.add_row("AWS", get_credentials_info())
    table.add_row("Auth", "token required" if app_config.auth_token else "[yellow]open (AG_CONTROL_TOKEN not set)[/]")
    console.print()
    console.print("  [bold]Bedrock Remote[/] control server")
    console.print(table)
    console.print()


def main():
    import uvicorn

    parser = argparse.ArgumentParser(description="Bedrock Remote: remote coding agent server")
    parser.add_argument("--port", type=int, default=app_config.port, help=f"Server port (default: {app_config.port})")
    parser.add_argument("--host", default=app_config.host, help=f"Server host (default: {app_config.host})")
    parser.add_argument("--workspace", default=None, help="Directory whose subdirectories are the projects")
    parser.add_argument("--log-level", default=app_config.log_level, help="Logging level (default: LOG_LEVEL or INFO)")
    args = parser.parse_args()

    console = Console(stderr=True)
    if args.workspace:
        workspace = os.path.abspath(os.path.expanduser(args.workspace))
        if not os.path.isdir(workspace):
            console.print(f"\n  [red]Error:[/] directory not found: {workspace}\n")
            raise SystemExit(1)
        app_config.workspace_path = workspace

    _setup_logging(args.log_level)
    _print_banner(console, args.host, args.port)

    from web import app
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
