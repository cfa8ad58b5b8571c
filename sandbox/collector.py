"""
Reads the captured state off a transient host node and shapes the result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from editor_host.scene import Node

if TYPE_CHECKING:
    from bridge.schemas import Response


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    COMPILE = "compile"
    RUNTIME = "runtime"


@dataclass
class ExecutionResult:
    success: bool
    output: list[str] = field(default_factory=list)
    error: str | None = None
    result: object = None
    error_kind: ErrorKind | None = None
    runtime_ms: float = 0.0

    def to_response(self) -> "Response":
        from bridge.schemas import Response

        return Response(
            success=self.success,
            output=list(self.output),
            error=self.error,
            result=self.result,
        )


def to_json_value(value: object, _active: set[int] | None = None) -> object:
    """Coerce a script value into something JSON can represent.

    A container that contains itself is rendered with ``str()`` at the point
    where it repeats.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Node):
        return value.get_path()
    if not isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return str(value)

    active = set() if _active is None else _active
    if id(value) in active:
        return str(value)
    active.add(id(value))
    try:
        if isinstance(value, Mapping):
            return {str(key): to_json_value(item, active) for key, item in value.items()}
        return [to_json_value(item, active) for item in value]
    finally:
        active.discard(id(value))


def validation_failure(message: str) -> ExecutionResult:
    return ExecutionResult(False, [], message, None, ErrorKind.VALIDATION)


def compile_failure(message: str) -> ExecutionResult:
    return ExecutionResult(False, [], message, None, ErrorKind.COMPILE)


def collect(node: Node) -> ExecutionResult:
    """Build a result from ``result``, ``output_lines`` and ``error_message`` on ``node``.

    Output captured before a failure is kept. The result value is dropped
    whenever an error was recorded.
    """
    raw_output = node.get("output_lines")
    output = [str(line) for line in raw_output] if isinstance(raw_output, list) else []
    error_message = node.get("error_message")
    error = str(error_message) if error_message else ""

    if error:
        return ExecutionResult(False, output, error, None, ErrorKind.RUNTIME)
    try:
        result = to_json_value(node.get("result"))
    except Exception as exc:
        message = f"Result could not be returned: {exc.__class__.__name__}: {exc}"
        return ExecutionResult(False, output, message, None, ErrorKind.RUNTIME)
    return ExecutionResult(True, output, None, result)
