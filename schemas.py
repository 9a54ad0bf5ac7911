"""
Entrypoint input models

Pydantic models for the paid HTTP entrypoints. Field names follow the JSON
wire format (camelCase aliases) and map onto snake_case attributes.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from summary.window import (
    DEFAULT_LOOKBACK_MINUTES,
    ENTRYPOINT_MAX_LOOKBACK_MINUTES,
    parse_message_link,
    validate_lookback,
)

_CHAT_ID = re.compile(r"^-?\d+$")


class DiscordSummaryInput(BaseModel):
    """Input for the summarise-chat entrypoint"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    channel_id: Optional[str] = Field(None, alias="channelId")
    server_id: Optional[str] = Field(None, alias="serverId")
    lookback_minutes: Optional[int] = Field(None, alias="lookbackMinutes")
    start_message_url: Optional[str] = Field(None, alias="startMessageUrl")
    end_message_url: Optional[str] = Field(None, alias="endMessageUrl")

    @field_validator("channel_id", "server_id", "start_message_url", "end_message_url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("lookback_minutes", mode="before")
    @classmethod
    def validate_lookback_minutes(cls, v: Any) -> Optional[int]:
        if v is None or v == "":
            return None
        return validate_lookback(v, ENTRYPOINT_MAX_LOOKBACK_MINUTES)

    @field_validator("start_message_url", "end_message_url")
    @classmethod
    def validate_message_link(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and parse_message_link(v) is None:
            raise ValueError("must be a Discord message link (https://discord.com/channels/...)")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "DiscordSummaryInput":
        """Exactly one of a lookback or a pair of message links"""
        has_links = self.start_message_url is not None or self.end_message_url is not None
        if self.lookback_minutes is not None and has_links:
            raise ValueError("Provide either lookbackMinutes or message links, not both.")
        if self.lookback_minutes is not None:
            if not self.channel_id:
                raise ValueError("channelId is required when using lookbackMinutes.")
            return self
        if has_links:
            if self.start_message_url is None or self.end_message_url is None:
                raise ValueError("Provide both startMessageUrl and endMessageUrl.")
            return self
        raise ValueError("Provide lookbackMinutes or both startMessageUrl and endMessageUrl.")


class TelegramSummaryInput(BaseModel):
    """Input for the summarise-telegram-chat entrypoint"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chat_id: str = Field(..., alias="chatId")
    lookback_minutes: int = Field(DEFAULT_LOOKBACK_MINUTES, alias="lookbackMinutes")

    @field_validator("chat_id", mode="before")
    @classmethod
    def validate_chat_id(cls, v: Any) -> str:
        if isinstance(v, bool) or v is None:
            raise ValueError("chatId must be a numeric Telegram chat identifier")
        v = str(v).strip()
        if not _CHAT_ID.match(v):
            raise ValueError("chatId must be a numeric Telegram chat identifier")
        return v

    @field_validator("lookback_minutes", mode="before")
    @classmethod
    def validate_lookback_minutes(cls, v: Any) -> int:
        if v is None or v == "":
            return DEFAULT_LOOKBACK_MINUTES
        return validate_lookback(v, ENTRYPOINT_MAX_LOOKBACK_MINUTES)


def validation_issues(error: ValidationError) -> List[Dict[str, str]]:
    """Flatten a ValidationError into {path, message} issues."""
    issues = []
    for err in error.errors():
        path = ".".join(str(part) for part in err.get("loc", ()))
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append({"path": path, "message": message})
    return issues
