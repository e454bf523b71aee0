"""Uniform response envelope returned by every engine endpoint.

Every payload is wrapped as ``{status, message, data}``. Only ``status ==
"ok"`` with a non-null ``data`` counts as success; ``"warning"`` and
``"error"`` carry a message that is shown to the operator verbatim.
"""

from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

EnvelopeStatus = Literal["ok", "error", "warning"]


class StatusResponse(BaseModel, Generic[T]):
    """Engine response envelope parameterised by its data payload."""

    status: EnvelopeStatus = Field(description="Application-level outcome")
    message: str = Field(default="", description="Human-readable outcome message")
    data: Optional[T] = Field(default=None, description="Payload, null on failure")

    @property
    def ok(self) -> bool:
        return self.status == "ok" and self.data is not None
