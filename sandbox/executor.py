"""
Runs synthesized scripts on a transient node inside the live scene graph.
"""

from __future__ import annotations

import logging
import re
import time

from editor_host.compiler import HostScript, ScriptCompiler
from editor_host.scene import Node
from editor_host.status import Status
from sandbox.collector import ExecutionResult, collect, compile_failure
from sandbox.synthesizer import DEFAULT_INDENT_WIDTH, SynthesizedUnit, synthesize

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def unit_name_for(client_id: object, command_id: object) -> str:
    """Node name for one execution, derived from the command's identifiers."""
    client = _UNSAFE_NAME_CHARS.sub("_", str(client_id)) or "client"
    command = _UNSAFE_NAME_CHARS.sub("_", str(command_id)) or "command"
    return f"EditorScript_{client}_{command}"


def _unique_child_name(parent: Node, base_name: str) -> str:
    name = base_name
    suffix = 2
    while parent.has_child(name):
        name = f"{base_name}_{suffix}"
        suffix += 1
    return name


class SandboxExecutor:
    """
    Execute a code fragment on a transient child node of ``parent``.

    The node lives for exactly one call: it is created, given the compiled
    script (which starts the script's ``_ready``), left to run for
    ``ticks_to_wait`` host frames, read, and freed. Failures of the fragment
    come back as an unsuccessful ``ExecutionResult``, never as an exception.
    """

    DEFAULT_TICKS_TO_WAIT: int = 2

    def __init__(
        self,
        compiler: ScriptCompiler,
        ticks_to_wait: int | None = None,
        indent_width: int = DEFAULT_INDENT_WIDTH,
    ) -> None:
        self.compiler = compiler
        self.ticks_to_wait: int = ticks_to_wait or self.DEFAULT_TICKS_TO_WAIT
        self.indent_width = indent_width

    async def execute(self, code: str, parent: Node, unit_name: str = "EditorScript") -> ExecutionResult:
        tree = parent.tree
        if tree is None:
            raise ValueError(f"Parent node {parent.get_path()!r} is not inside a scene tree")

        start = time.perf_counter()
        unit = synthesize(code, self.indent_width)
        node = Node(_unique_child_name(parent, unit_name))
        parent.add_child(node)
        logger.debug("Created transient node %s", node.get_path())
        try:
            status, diagnostic, script = self.compiler.compile(unit.source, path=node.get_path())
            if status != Status.OK or script is None:
                result = compile_failure(_parse_error_message(unit, diagnostic, status))
            else:
                result = await self._run_attached(node, script)
        finally:
            node.free()
            logger.debug("Freed transient node %s", node.get_path())

        result.runtime_ms = (time.perf_counter() - start) * 1000
        if result.success:
            logger.info("Script %s finished in %.1f ms", unit_name, result.runtime_ms)
        else:
            logger.info("Script %s failed: %s", unit_name, result.error)
        return result

    async def _run_attached(self, node: Node, script: HostScript) -> ExecutionResult:
        tree = node.tree
        assert tree is not None
        node.set_script(script)
        for _ in range(self.ticks_to_wait):
            await tree.process_frame()
        if node.ready_pending:
            logger.warning(
                "Script on %s still running after %d frames; collecting partial state",
                node.get_path(),
                self.ticks_to_wait,
            )
        return collect(node)


def _parse_error_message(unit: SynthesizedUnit, diagnostic: str | None, status: Status) -> str:
    detail = diagnostic or status.name
    match = re.match(r"line (\d+): (.*)", detail, re.DOTALL)
    if match:
        fragment_line = unit.fragment_line(int(match.group(1)))
        if fragment_line is not None:
            detail = f"line {fragment_line}: {match.group(2)}"
    return f"Script parsing error: {detail}"
