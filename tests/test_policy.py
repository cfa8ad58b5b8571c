import builtins

import pytest

from editor_host.compiler import ScriptCompiler
from editor_host.scene import Console
from editor_host.status import Status
from sandbox.policy import build_import_guard, build_script_builtins


def test_unrestricted_builtins_only_replace_print() -> None:
    console = Console()
    script_builtins = build_script_builtins(console.print)

    assert script_builtins["print"] == console.print
    assert script_builtins["open"] is builtins.open
    assert script_builtins["__import__"] is builtins.__import__


def test_restricted_builtins_block_imports_and_open() -> None:
    console = Console()
    compiler = ScriptCompiler(console, build_script_builtins(console.print, restricted=True))

    status, diagnostic, _ = compiler.compile("import socket")
    assert status == Status.ERR_COMPILATION_FAILED
    assert diagnostic is not None and "blocked" in diagnostic

    status, diagnostic, _ = compiler.compile("open('x', 'w')")
    assert status == Status.ERR_COMPILATION_FAILED
    assert diagnostic is not None and "Blocked by sandbox policy" in diagnostic

    status, _, script = compiler.compile("import math\nvalue = math.sqrt(16)")
    assert status == Status.OK
    assert script is not None and script.namespace["value"] == 4.0


def test_restricted_builtins_leave_interpreter_untouched() -> None:
    original_import = builtins.__import__
    original_open = builtins.open
    build_script_builtins(print, restricted=True)

    assert builtins.__import__ is original_import
    assert builtins.open is original_open


def test_import_guard_rejects_unlisted_module() -> None:
    guard = build_import_guard(allowed_modules=["math"], blocked_modules=["os"])
    assert guard("math").sqrt(9) == 3.0
    with pytest.raises(ImportError, match="not allowlisted"):
        guard("json")
    with pytest.raises(ImportError, match="blocked"):
        guard("os.path")
