"""
Scene graph and cooperative frame loop of the editor host.

Nodes form a tree under ``SceneTree.root``. The tree advances one frame at a
time on the running asyncio loop; code that needs to wait for the host awaits
``SceneTree.process_frame()`` and resumes at the next frame boundary.
"""

from __future__ import annotations

import asyncio
import builtins
import contextlib
import inspect
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from editor_host.compiler import HostScript

logger = logging.getLogger(__name__)
console_logger = logging.getLogger("editor_host.console")


class SceneError(Exception):
    """Raised when the scene graph is used incorrectly."""


class DuplicateNameError(SceneError):
    pass


class Console:
    """Host console. Keeps the most recent lines and mirrors them to logging."""

    def __init__(self, max_lines: int = 1000) -> None:
        self.lines: deque[str] = deque(maxlen=max_lines)

    def print(
        self,
        *args: object,
        sep: str | None = " ",
        end: str | None = "\n",
        file: Any = None,
        flush: bool = False,
    ) -> None:
        """Write to the console, or to ``file`` like the builtin when one is given."""
        if file is not None:
            builtins.print(*args, sep=sep, end=end, file=file, flush=flush)
            return
        sep = " " if sep is None else sep
        end = "\n" if end is None else end
        text = sep.join(str(arg) for arg in args)
        for line in (text + end).splitlines() or [""]:
            self.lines.append(line)
            console_logger.info("%s", line)

    def clear(self) -> None:
        self.lines.clear()


class Node:
    """A named scene-graph node that can carry one host script."""

    def __init__(self, name: str) -> None:
        if not name or "/" in name:
            raise SceneError(f"Invalid node name: {name!r}")
        self.name = name
        self.parent: Node | None = None
        self._children: dict[str, Node] = {}
        self._script: HostScript | None = None
        self._ready_task: asyncio.Task[object] | None = None
        self._tree: SceneTree | None = None
        self._freed = False

    def __repr__(self) -> str:
        return f"Node({self.get_path()!r})"

    # -- tree structure -------------------------------------------------

    @property
    def tree(self) -> SceneTree | None:
        node: Node = self
        while node.parent is not None:
            node = node.parent
        return node._tree

    @property
    def is_freed(self) -> bool:
        return self._freed

    def is_inside_tree(self) -> bool:
        return self.tree is not None

    def add_child(self, node: Node) -> None:
        if self._freed or node._freed:
            raise SceneError("Cannot add a freed node")
        if node.parent is not None:
            raise SceneError(f"Node {node.name!r} already has a parent")
        if node.name in self._children:
            raise DuplicateNameError(
                f"Node {self.get_path()!r} already has a child named {node.name!r}"
            )
        self._children[node.name] = node
        node.parent = self

    def remove_child(self, node: Node) -> None:
        if self._children.get(node.name) is not node:
            raise SceneError(f"{node.name!r} is not a child of {self.get_path()!r}")
        del self._children[node.name]
        node.parent = None

    def has_child(self, name: str) -> bool:
        return name in self._children

    def get_child(self, name: str) -> Node | None:
        return self._children.get(name)

    def get_children(self) -> list[Node]:
        return list(self._children.values())

    def get_child_count(self) -> int:
        return len(self._children)

    def get_path(self) -> str:
        names: list[str] = []
        node: Node | None = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return "/" + "/".join(reversed(names))

    def get_node(self, path: str) -> Node | None:
        node: Node | None = self
        for part in path.split("/"):
            if node is None:
                return None
            if part in ("", "."):
                continue
            node = node.parent if part == ".." else node.get_child(part)
        return node

    # -- scripting ------------------------------------------------------

    @property
    def script(self) -> HostScript | None:
        return self._script

    def set_script(self, script: HostScript) -> None:
        """Bind a reloaded script and run its ``_ready`` entry point.

        A coroutine entry point is scheduled on the running loop and may
        suspend across frames; a plain function runs immediately.
        """
        if self._freed:
            raise SceneError("Cannot attach a script to a freed node")
        if script.namespace is None:
            raise SceneError("Script must be reloaded before it is attached")
        self._script = script
        ready = script.namespace.get("_ready")
        if inspect.iscoroutinefunction(ready):
            loop = asyncio.get_running_loop()
            self._ready_task = loop.create_task(ready(self), name=f"ready:{self.get_path()}")
            self._ready_task.add_done_callback(self._on_ready_done)
        elif callable(ready):
            ready(self)

    def get(self, name: str) -> object:
        if self._script is None or self._script.namespace is None:
            return None
        return self._script.namespace.get(name)

    @property
    def ready_pending(self) -> bool:
        return self._ready_task is not None and not self._ready_task.done()

    def _on_ready_done(self, task: asyncio.Task[object]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled error in _ready of %s: %s", self.get_path(), exc)

    def free(self) -> None:
        """Detach this node and its subtree and release their scripts."""
        if self._freed:
            return
        for child in self.get_children():
            child.free()
        if self.parent is not None:
            self.parent.remove_child(self)
        if self.ready_pending:
            assert self._ready_task is not None
            self._ready_task.cancel()
        self._ready_task = None
        self._script = None
        self._freed = True


class SceneTree:
    """Owns the root node and drives frames on the asyncio loop."""

    def __init__(self, frame_interval: float = 1 / 60, console: Console | None = None) -> None:
        self.frame_interval = frame_interval
        self.console = console or Console()
        self.root = Node("root")
        self.root._tree = self
        self.frame = 0
        self._frame_waiters: list[asyncio.Future[int]] = []
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> SceneTree:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    @property
    def is_processing(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_processing:
            raise SceneError("Scene tree is already processing frames")
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_frames(), name="scene-tree-frames")
        logger.debug("Scene tree started (frame_interval=%s)", self.frame_interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        waiters, self._frame_waiters = self._frame_waiters, []
        for waiter in waiters:
            waiter.cancel()
        logger.debug("Scene tree stopped at frame %d", self.frame)

    async def _run_frames(self) -> None:
        while True:
            await asyncio.sleep(self.frame_interval)
            self.tick()

    def tick(self) -> int:
        """Advance one frame and wake everything waiting on the boundary."""
        self.frame += 1
        waiters, self._frame_waiters = self._frame_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(self.frame)
        return self.frame

    def process_frame(self) -> asyncio.Future[int]:
        """Return a future resolved at the next frame boundary."""
        if not self.is_processing:
            raise SceneError("Scene tree is not processing frames")
        waiter: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._frame_waiters.append(waiter)
        return waiter
