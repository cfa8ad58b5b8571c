import asyncio

import pytest

from bridge.app import PROCESSOR_NODE_NAME, EditorBridge
from bridge.config import BridgeConfig
from bridge.schemas import Response


def _bridge_run(coro_factory):
    async def scenario():
        async with EditorBridge(BridgeConfig(frame_interval=0)) as bridge:
            return await coro_factory(bridge)

    return asyncio.run(scenario())


@pytest.mark.parametrize("params", [{}, {"code": ""}, {"code": "   \n\t"}, {"code": 42}])
def test_empty_code_fails_validation_without_creating_nodes(params, monkeypatch) -> None:
    async def scenario(bridge: EditorBridge) -> tuple[Response, int, int]:
        async def must_not_run(*args, **kwargs):
            raise AssertionError("executor should not run for invalid input")

        monkeypatch.setattr(bridge.executor, "execute", must_not_run)
        before = bridge.processor.get_child_count()
        response = await bridge.execute_handler.handle("c1", params, "id-1")
        return response, before, bridge.processor.get_child_count()

    response, before, after = _bridge_run(scenario)
    assert response.success is False
    assert response.error == "Code cannot be empty"
    assert before == after == 0


def test_execute_handler_names_node_after_command() -> None:
    async def scenario(bridge: EditorBridge) -> Response:
        return await bridge.execute("result = node.name", client_id="c1", command_id="abc")

    response = _bridge_run(scenario)
    assert response.success is True
    assert response.result == "EditorScript_c1_abc"


def test_bridge_parents_scripts_under_processor() -> None:
    async def scenario(bridge: EditorBridge) -> Response:
        return await bridge.execute("result = node.parent.get_path()")

    response = _bridge_run(scenario)
    assert response.result == f"/root/{PROCESSOR_NODE_NAME}"


def test_ping_and_info_handlers() -> None:
    async def scenario(bridge: EditorBridge) -> tuple[Response, Response]:
        ping = await bridge.router.find_handler("ping").handle("c1", {}, "p")
        info = await bridge.router.find_handler("get_bridge_info").handle("c1", {}, "i")
        return ping, info

    ping, info = _bridge_run(scenario)
    assert ping.result["pong"] is True
    assert ping.result["processing"] is True
    assert info.result["commands"] == ["execute_editor_script", "get_bridge_info", "ping"]
