"""Wires the editor host, the sandbox and the transport into one bridge."""

from __future__ import annotations

import logging
import uuid

from editor_host.compiler import ScriptCompiler
from editor_host.scene import Console, Node, SceneTree
from sandbox import policy
from sandbox.executor import SandboxExecutor

from bridge.config import BridgeConfig
from bridge.handlers import BridgeInfoHandler, ExecuteScriptHandler, PingHandler
from bridge.router import CommandRouter
from bridge.schemas import Response
from bridge.transport import BridgeServer

logger = logging.getLogger(__name__)

PROCESSOR_NODE_NAME = "CommandProcessor"


class EditorBridge:
    """
    A live editor host plus everything needed to drive it remotely.

    Transient script nodes are parented under ``processor``, a child of the
    scene root.
    """

    def __init__(self, config: BridgeConfig | None = None) -> None:
        self.config = config or BridgeConfig()
        self.console = Console(max_lines=self.config.console_max_lines)
        self.tree = SceneTree(frame_interval=self.config.frame_interval, console=self.console)
        self.processor = Node(PROCESSOR_NODE_NAME)
        self.tree.root.add_child(self.processor)

        script_builtins = policy.build_script_builtins(
            self.console.print,
            restricted=self.config.restricted,
            allowed_modules=self.config.allowed_modules,
        )
        self.compiler = ScriptCompiler(self.console, script_builtins)
        self.executor = SandboxExecutor(
            self.compiler,
            ticks_to_wait=self.config.ticks_to_wait,
            indent_width=self.config.indent_width,
        )

        self.server = BridgeServer(
            self.config.host,
            self.config.port,
            self.config.read_timeout_s,
            limit=self.config.max_message_bytes,
        )
        self.router = CommandRouter(self.server)
        self.execute_handler = ExecuteScriptHandler(self.executor, self.processor)
        self.router.register(self.execute_handler)
        self.router.register(PingHandler(self.tree))
        self.router.register(BridgeInfoHandler(self.router.command_types))
        self.server.bind(self.router)

    async def __aenter__(self) -> EditorBridge:
        self.tree.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.server.stop()
        await self.tree.stop()

    async def execute(
        self,
        code: str,
        client_id: str = "local",
        command_id: str | None = None,
    ) -> Response:
        """Run a fragment directly, without going through the transport."""
        command_id = command_id or uuid.uuid4().hex[:12]
        return await self.execute_handler.handle(client_id, {"code": code}, command_id)

    async def serve(self) -> None:
        async with self:
            await self.server.start()
            logger.info("Editor bridge ready (frame_interval=%s)", self.config.frame_interval)
            await self.server.serve_forever()
