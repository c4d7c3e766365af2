"""Data models for the conversation log.

These models define the transcript entries independent of how they are
rendered, exported or sent to a backend.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """One turn in a conversation.

    Assistant messages always carry the id of the model that produced them;
    user and system messages never do. Messages are immutable once created.
    """

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Role of the message sender")
    content: str = Field(description="Content of the message")
    model: str | None = Field(
        default=None,
        description="Backend model that produced an assistant message"
    )
    created_at: datetime = Field(default_factory=datetime.now, exclude=True)

    @model_validator(mode="after")
    def _check_model_attribution(self) -> "Message":
        if self.role is Role.ASSISTANT and not self.model:
            raise ValueError("assistant messages require a model")
        if self.role is not Role.ASSISTANT and self.model is not None:
            raise ValueError(f"{self.role.value} messages cannot carry a model")
        return self

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def assistant(cls, content: str, model: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, model=model)

    def to_api(self) -> dict[str, str]:
        """Request representation (role and content only)."""
        return {"role": self.role.value, "content": self.content}
