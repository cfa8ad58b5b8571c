"""Command handlers. Each handler owns one family of command types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from editor_host.scene import Node, SceneTree
from sandbox.collector import validation_failure
from sandbox.executor import SandboxExecutor, unit_name_for

from bridge import __version__
from bridge.schemas import Response


class CommandHandler(ABC):
    """Abstract interface for command handlers."""

    command_types: frozenset[str] = frozenset()

    def matches(self, command_type: str) -> bool:
        return command_type in self.command_types

    @abstractmethod
    async def handle(self, client_id: str, params: Mapping[str, Any], command_id: str) -> Response:
        """Run the command and return its single response."""


class ExecuteScriptHandler(CommandHandler):
    """Runs a code fragment inside the editor host."""

    command_types = frozenset({"execute_editor_script"})

    def __init__(self, executor: SandboxExecutor, processor: Node) -> None:
        self.executor = executor
        self.processor = processor

    async def handle(self, client_id: str, params: Mapping[str, Any], command_id: str) -> Response:
        code = params.get("code")
        if not isinstance(code, str) or not code.strip():
            return validation_failure("Code cannot be empty").to_response()

        result = await self.executor.execute(
            code,
            self.processor,
            unit_name=unit_name_for(client_id, command_id),
        )
        return result.to_response()


class PingHandler(CommandHandler):
    """Liveness check; reports the host's current frame."""

    command_types = frozenset({"ping"})

    def __init__(self, tree: SceneTree) -> None:
        self.tree = tree

    async def handle(self, client_id: str, params: Mapping[str, Any], command_id: str) -> Response:
        return Response(
            success=True,
            result={"pong": True, "frame": self.tree.frame, "processing": self.tree.is_processing},
        )


class BridgeInfoHandler(CommandHandler):
    command_types = frozenset({"get_bridge_info"})

    def __init__(self, list_command_types: Callable[[], Iterable[str]]) -> None:
        self.list_command_types = list_command_types

    async def handle(self, client_id: str, params: Mapping[str, Any], command_id: str) -> Response:
        return Response(
            success=True,
            result={"version": __version__, "commands": sorted(self.list_command_types())},
        )
