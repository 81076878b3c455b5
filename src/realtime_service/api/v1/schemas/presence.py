from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OnlineStatusResponse(_Camel):
    user_id: int
    is_online: bool


class PresenceBatchRequest(_Camel):
    user_ids: list[int] = Field(max_length=500)


class PresenceBatchResponse(_Camel):
    statuses: dict[int, bool]
