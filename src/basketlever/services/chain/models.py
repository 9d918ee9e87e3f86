"""Call envelopes routed between in-memory contracts."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CallPayload(BaseModel):
    """Method name plus keyword arguments for an external call."""

    model_config = ConfigDict(frozen=True)

    method: str
    kwargs: dict[str, Any] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        if not v or v.startswith("_"):
            raise ValueError(f"Invalid call method: {v!r}")
        return v


class TradeCall(BaseModel):
    """Target, native value and payload of one external call.

    Returned by exchange adapters as trade calldata and by the engine's
    lending helpers; executed through the basket token's invoke().
    """

    model_config = ConfigDict(frozen=True)

    target: str
    value: int = 0
    payload: CallPayload

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Call value cannot be negative, got {v}")
        return v
