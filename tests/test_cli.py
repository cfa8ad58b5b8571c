import asyncio
import json
import os
import signal
import sys
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from bridge.app import EditorBridge
from bridge.cli import _serve_until_terminated, app
from bridge.config import BridgeConfig

runner = CliRunner()


def _fast_config(tmp_path: Path) -> Path:
    config_file = tmp_path / "bridge.yaml"
    with open(config_file, "w") as f:
        yaml.dump({"frame_interval": 0}, f)
    return config_file


def test_exec_prints_response(tmp_path: Path) -> None:
    script = tmp_path / "hello.py"
    script.write_text("print('hi from cli')\nresult = 7\n")

    result = runner.invoke(app, ["exec", str(script), "--config", str(_fast_config(tmp_path))])

    assert result.exit_code == 0
    payload = json.loads(result.stdout[result.stdout.index("{"):])
    assert payload == {"success": True, "output": ["hi from cli"], "result": 7}


def test_exec_failure_exits_nonzero(tmp_path: Path) -> None:
    script = tmp_path / "broken.py"
    script.write_text("x = = 1\n")

    result = runner.invoke(app, ["exec", str(script), "--config", str(_fast_config(tmp_path))])

    assert result.exit_code == 1
    assert "Script parsing error" in result.stdout


def test_exec_missing_script(tmp_path: Path) -> None:
    result = runner.invoke(app, ["exec", str(tmp_path / "nope.py")])
    assert result.exit_code == 1


def test_exec_invalid_config(tmp_path: Path) -> None:
    script = tmp_path / "ok.py"
    script.write_text("result = 1\n")
    config_file = tmp_path / "bad.yaml"
    config_file.write_text(yaml.dump({"ticks_to_wait": 0}))

    result = runner.invoke(app, ["exec", str(script), "--config", str(config_file)])
    assert result.exit_code == 1


@pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM handlers need a Unix event loop")
def test_sigterm_stops_serving_cleanly() -> None:
    bridge = EditorBridge(BridgeConfig(port=0, frame_interval=0))

    async def scenario() -> None:
        asyncio.get_running_loop().call_later(0.2, os.kill, os.getpid(), signal.SIGTERM)
        await _serve_until_terminated(bridge)

    asyncio.run(scenario())

    assert not bridge.tree.is_processing
    assert bridge.server.client_count == 0
    assert bridge.processor.get_child_count() == 0
