"""First-match command router."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from bridge.handlers import CommandHandler
from bridge.schemas import Command, Response

logger = logging.getLogger(__name__)


class Responder(Protocol):
    async def send(self, client_id: str, command_id: str, response: Response) -> None: ...


class CommandRouter:
    """
    Route commands to the first registered handler whose types match.

    A matched command always produces exactly one response: the handler's
    return value, or an error response if the handler raised. Unmatched
    commands produce nothing here and ``route`` returns False so the caller
    can decide how to report them.
    """

    def __init__(self, responder: Responder, handlers: Iterable[CommandHandler] = ()) -> None:
        self.responder = responder
        self.handlers: list[CommandHandler] = list(handlers)

    def register(self, handler: CommandHandler) -> None:
        self.handlers.append(handler)

    def find_handler(self, command_type: str) -> CommandHandler | None:
        for handler in self.handlers:
            if handler.matches(command_type):
                return handler
        return None

    def command_types(self) -> list[str]:
        seen: list[str] = []
        for handler in self.handlers:
            seen.extend(name for name in sorted(handler.command_types) if name not in seen)
        return seen

    async def route(
        self,
        client_id: str,
        command_type: str,
        params: Mapping[str, Any],
        command_id: str,
    ) -> bool:
        handler = self.find_handler(command_type)
        if handler is None:
            logger.debug("No handler for command %r (id=%s)", command_type, command_id)
            return False

        logger.debug("Routing %r (id=%s) to %s", command_type, command_id, type(handler).__name__)
        try:
            response = await handler.handle(client_id, params, command_id)
        except Exception as exc:  # noqa: BLE001 - every matched command gets a response
            logger.exception("%s failed on %r (id=%s)", type(handler).__name__, command_type, command_id)
            response = Response.failure(f"Internal error while handling {command_type}: {exc}")
        await self.responder.send(client_id, command_id, response)
        return True

    async def dispatch(self, command: Command) -> bool:
        return await self.route(
            command.client_id,
            command.command_type,
            command.params,
            command.command_id,
        )
