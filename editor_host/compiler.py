"""
Host script compiler.

Scripts are plain Python source evaluated into a private namespace. Like the
rest of the host API, compilation reports a ``Status`` and a diagnostic rather
than raising.
"""

from __future__ import annotations

import builtins
import itertools
import logging
from collections.abc import Mapping

from editor_host.scene import Console
from editor_host.status import Status

logger = logging.getLogger(__name__)

_script_ids = itertools.count(1)


class HostScript:
    """Source text plus the namespace produced by its last successful reload."""

    def __init__(
        self,
        source_code: str,
        path: str | None = None,
        script_builtins: Mapping[str, object] | None = None,
    ) -> None:
        self.source_code = source_code
        self.path = path or f"<script:{next(_script_ids)}>"
        self.script_builtins = dict(script_builtins if script_builtins is not None else vars(builtins))
        self.namespace: dict[str, object] | None = None
        self.error_line: int | None = None
        self.error_message: str | None = None

    @property
    def diagnostic(self) -> str | None:
        if self.error_message is None:
            return None
        if self.error_line is None:
            return self.error_message
        return f"line {self.error_line}: {self.error_message}"

    def reload(self) -> Status:
        self.namespace = None
        self.error_line = None
        self.error_message = None
        try:
            code = compile(self.source_code, self.path, "exec")
        except SyntaxError as exc:
            self.error_line = exc.lineno
            self.error_message = exc.msg
            return Status.ERR_PARSE_ERROR

        namespace: dict[str, object] = {
            "__name__": self.path,
            "__builtins__": self.script_builtins,
        }
        try:
            exec(code, namespace)
        except Exception as exc:  # noqa: BLE001 - top-level errors become a status
            self.error_message = f"{exc.__class__.__name__}: {exc}"
            tb = exc.__traceback__
            while tb is not None:
                if tb.tb_frame.f_code.co_filename == self.path:
                    self.error_line = tb.tb_lineno
                tb = tb.tb_next
            return Status.ERR_COMPILATION_FAILED

        self.namespace = namespace
        return Status.OK


class ScriptCompiler:
    """Compiles source text into host scripts sharing one builtins mapping."""

    def __init__(
        self,
        console: Console,
        script_builtins: Mapping[str, object] | None = None,
    ) -> None:
        self.console = console
        if script_builtins is None:
            script_builtins = {**vars(builtins), "print": console.print}
        self.script_builtins = dict(script_builtins)

    def compile(
        self,
        source_text: str,
        path: str | None = None,
    ) -> tuple[Status, str | None, HostScript | None]:
        script = HostScript(source_text, path=path, script_builtins=self.script_builtins)
        status = script.reload()
        if status != Status.OK:
            logger.debug("Compile of %s failed (%s): %s", script.path, status.name, script.diagnostic)
            return status, script.diagnostic, None
        return status, None, script
