"""Wire documents exchanged with the control plane and presence entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


BotID = str
SessionToken = str


class BotIdDocument(BaseModel):
    """Body of GET /api/v1/botId."""

    model_config = ConfigDict(extra="ignore")

    default_bot_id: str = Field(..., alias="defaultBotId")


class LoginRequest(BaseModel):
    """Body of POST /api/v1/bot/login."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    bot_id: str = Field(..., alias="botId")


class LoginDocument(BaseModel):
    """Body returned by POST /api/v1/bot/login."""

    model_config = ConfigDict(extra="ignore")

    token: str


class Instance(BaseModel):
    """A provisioned bot instance known to the control plane."""

    model_config = ConfigDict(extra="ignore")

    uuid: str


class InstanceSettings(BaseModel):
    """Desired nickname and target voice server for an instance."""

    model_config = ConfigDict(populate_by_name=True)

    instance_id: str = Field(..., alias="instanceId")
    nick: str
    server_host: str = Field(..., alias="serverHost")

    def to_payload(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


InstanceList = TypeAdapter(list[Instance])


@dataclass(frozen=True)
class PresenceEntry:
    """One client the voice server reports as connected."""

    nickname: str
    clid: Optional[int] = None
    cid: Optional[int] = None
    client_type: Optional[int] = None

    @classmethod
    def from_record(cls, record: dict[str, str]) -> "PresenceEntry":
        def _int(key: str) -> Optional[int]:
            value = record.get(key)
            return int(value) if value not in (None, "") else None

        return cls(
            nickname=record.get("client_nickname", ""),
            clid=_int("clid"),
            cid=_int("cid"),
            client_type=_int("client_type"),
        )
