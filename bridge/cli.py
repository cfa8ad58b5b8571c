"""CLI interface for the editor bridge."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
from pathlib import Path
from typing import Optional

import typer

from bridge.app import EditorBridge
from bridge.config import BridgeConfig, load_config
from bridge.transport import BridgeClient, MessageTooLargeError

logger = logging.getLogger(__name__)

app = typer.Typer(help="Editor script bridge CLI")


def _load(config_path: Optional[str]) -> BridgeConfig:
    if config_path is None:
        return BridgeConfig()
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        typer.secho(f"❌ Config file not found: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.secho(f"❌ Invalid config: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _read_code(code_path: str) -> str:
    path = Path(code_path)
    if not path.exists():
        typer.secho(f"❌ Script not found: {code_path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _serve_until_terminated(bridge: EditorBridge) -> None:
    """Run the bridge until it is cancelled or the process receives SIGTERM."""
    loop = asyncio.get_running_loop()
    serving = asyncio.ensure_future(bridge.serve())
    terminated = False

    def _terminate() -> None:
        nonlocal terminated
        terminated = True
        serving.cancel()

    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGTERM, _terminate)
    try:
        await serving
    except asyncio.CancelledError:
        if not terminated:
            raise
        logger.info("Received SIGTERM, bridge stopped")
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGTERM)


@app.command()
def serve(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to bridge YAML config"),
    host: Optional[str] = typer.Option(None, help="Override listen host"),
    port: Optional[int] = typer.Option(None, help="Override listen port"),
) -> None:
    """Start the editor host and accept commands over TCP."""
    config = _load(config_path)
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    _setup_logging(config.log_level)

    try:
        asyncio.run(_serve_until_terminated(EditorBridge(config)))
    except KeyboardInterrupt:
        typer.secho("\nBridge stopped.", fg=typer.colors.YELLOW)
    except OSError as e:
        typer.secho(f"❌ Could not start bridge: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.command("exec")
def exec_script(
    code_path: str = typer.Argument(..., help="File containing the code fragment"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to bridge YAML config"),
) -> None:
    """Run a fragment against an in-process editor host and print the response."""
    config = _load(config_path)
    code = _read_code(code_path)
    _setup_logging("WARNING")

    async def _run():
        async with EditorBridge(config) as bridge:
            return await bridge.execute(code, client_id="cli")

    response = asyncio.run(_run())
    typer.echo(json.dumps(response.to_payload(), indent=2, default=str))
    if not response.success:
        raise typer.Exit(1)


@app.command()
def send(
    code_path: str = typer.Argument(..., help="File containing the code fragment"),
    host: str = typer.Option("127.0.0.1", help="Bridge host"),
    port: int = typer.Option(9080, help="Bridge port"),
    timeout: float = typer.Option(30.0, help="Seconds to wait for the reply"),
) -> None:
    """Send a fragment to a running bridge."""
    code = _read_code(code_path)

    async def _send():
        async with BridgeClient(host, port, timeout=timeout) as client:
            return await client.send_command("execute_editor_script", {"code": code})

    try:
        reply = asyncio.run(_send())
    except (OSError, TimeoutError) as e:
        typer.secho(f"❌ Could not reach bridge at {host}:{port}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except MessageTooLargeError:
        typer.secho("❌ Reply exceeded the message size limit", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(json.dumps(reply, indent=2))
    if reply.get("status") != "success":
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
