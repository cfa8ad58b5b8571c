from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump()

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


class Command(BaseSchema):
    model_config = ConfigDict(frozen=True)

    client_id: str
    command_type: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    command_id: str = ""

    @classmethod
    def from_message(cls, client_id: object, message: Mapping[str, object]) -> "Command":
        """Build a command from the wire form ``{"type", "params", "commandId"}``."""
        command_type = message.get("type")
        if not isinstance(command_type, str) or not command_type:
            raise ValueError("Command is missing 'type'")
        params = message.get("params") or {}
        if not isinstance(params, Mapping):
            raise ValueError("Command 'params' must be an object")
        command_id = message.get("commandId")
        return cls(
            client_id=str(client_id),
            command_type=command_type,
            params=dict(params),
            command_id="" if command_id is None else str(command_id),
        )


class Response(BaseSchema):
    success: bool
    output: list[str] = Field(default_factory=list)
    error: str | None = None
    result: Any = None

    @model_validator(mode="after")
    def error_iff_failed(self) -> "Response":
        if self.success and self.error:
            raise ValueError("A successful response cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("A failed response needs an error message")
        return self

    @classmethod
    def failure(cls, message: str, output: list[str] | None = None) -> "Response":
        return cls(success=False, output=list(output or []), error=message)

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"success": self.success, "output": list(self.output)}
        if self.error:
            payload["error"] = self.error
        elif self.result is not None:
            payload["result"] = self.result
        return payload
