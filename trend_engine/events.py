"""
Схемы событий движка трендов.

Context7: входящее событие публикации статуса (``StatusEvent``) и
исходящее уведомление для модераторов (``TrendReviewRequestedEventV1``).
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

PUBLIC_VISIBILITY = "public"


class BaseEvent(BaseModel):
    """Общие поля событий: версия схемы, trace_id, время и ключ идемпотентности."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)

    schema_version: str = Field(default="v1", description="Версия схемы события")
    trace_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Идентификатор трассировки для корреляции логов",
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Время возникновения события в UTC",
    )
    idempotency_key: str = Field(..., description="Ключ идемпотентности обработки")


class TagPayload(BaseModel):
    id: str
    name: str
    usable: bool = True
    trendable: bool = False
    requires_review: bool = True


class LinkPayload(BaseModel):
    id: str
    url: str
    title: Optional[str] = None
    type: str = "link"
    trendable: bool = False
    requires_review: bool = True


class StatusEvent(BaseEvent):
    """Публикация статуса - единственная точка входа для ingestion."""

    status_id: str
    account_id: str
    language: Optional[str] = None
    visibility: str = PUBLIC_VISIBILITY
    reblog: bool = False
    account_silenced: bool = False
    account_discoverable: bool = False
    in_reply_to_id: Optional[str] = None
    sensitive: bool = False
    url: Optional[str] = None
    tags: List[TagPayload] = Field(default_factory=list)
    links: List[LinkPayload] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def default_idempotency_key(cls, data):
        if isinstance(data, dict) and not data.get("idempotency_key") and data.get("status_id"):
            data = {**data, "idempotency_key": f"status:{data['status_id']}"}
        return data

    @property
    def is_public(self) -> bool:
        return self.visibility == PUBLIC_VISIBILITY


class ReviewedEntity(BaseModel):
    id: str
    attributes: dict = Field(default_factory=dict)


class TrendReviewRequestedEventV1(BaseEvent):
    """Новые сущности, требующие решения модератора."""

    kind: str
    entities: List[ReviewedEntity] = Field(default_factory=list)
    requested_at: datetime
