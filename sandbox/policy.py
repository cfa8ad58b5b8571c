"""
Builtins policy for host scripts: console print plus optional import/builtin guards.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Iterable, Sequence
from types import ModuleType
from typing import cast

BLOCKED_NAMES = [
    "os",
    "sys",
    "subprocess",
    "socket",
    "urllib",
    "http",
    "ctypes",
    "importlib",
    "eval",
    "exec",
    "compile",
    "open",
    "input",
    "breakpoint",
]

ALLOWED_MODULES = [
    "math",
    "random",
    "itertools",
    "functools",
    "collections",
    "json",
    "re",
    "string",
    "typing",
    "dataclasses",
]

ImportHook = Callable[..., ModuleType]


def _normalize_names(names: Iterable[str] | None) -> set[str]:
    return {name for name in (names or [])}


def build_import_guard(
    allowed_modules: Iterable[str] | None = None,
    blocked_modules: Iterable[str] | None = None,
) -> ImportHook:
    """
    Build an __import__ replacement that only allows allowlisted modules
    and refuses anything explicitly blocked.
    """
    allowed = _normalize_names(allowed_modules if allowed_modules is not None else ALLOWED_MODULES)
    blocked = _normalize_names(blocked_modules if blocked_modules is not None else BLOCKED_NAMES)
    original_import = cast(ImportHook, builtins.__import__)

    def guarded_import(
        name: str,
        globals: dict[str, object] | None = None,
        locals: dict[str, object] | None = None,
        fromlist: Sequence[str] = (),
        level: int = 0,
    ) -> ModuleType:
        root = name.split(".")[0]
        if root in blocked or name in blocked:
            raise ImportError(f"Import of '{root}' blocked by sandbox policy")
        if root not in allowed:
            raise ImportError(f"Import of '{root}' is not allowlisted")
        return original_import(name, globals, locals, fromlist, level)

    return guarded_import


def _blocked(*_args: object, **_kwargs: object) -> None:
    raise RuntimeError("Blocked by sandbox policy")


def build_script_builtins(
    print_fn: Callable[..., None],
    restricted: bool = False,
    allowed_modules: Iterable[str] | None = None,
    blocked_names: Iterable[str] | None = None,
) -> dict[str, object]:
    """Return the builtins mapping handed to every compiled host script.

    ``print`` always goes to the host console. With ``restricted`` set,
    imports pass through an allowlist and blocked builtins raise. The
    interpreter-wide ``builtins`` module is left as it is.
    """
    script_builtins: dict[str, object] = dict(vars(builtins))
    script_builtins["print"] = print_fn
    if not restricted:
        return script_builtins

    blocked = _normalize_names(blocked_names if blocked_names is not None else BLOCKED_NAMES)
    script_builtins["__import__"] = build_import_guard(
        allowed_modules=allowed_modules,
        blocked_modules=blocked,
    )
    for name in blocked:
        if name in script_builtins:
            script_builtins[name] = _blocked
    return script_builtins
