"""
Виды трендов как стратегии для общего движка.

Context7: вместо наследования (один класс на вид) каждый вид задаётся
функцией извлечения сущностей из события, предикатом пригодности и
функцией извлечения атрибутов для отображения.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List

from .domain import TrendableEntity
from .events import StatusEvent
from .exceptions import UnknownTrendKindError


@dataclass(frozen=True)
class TrendKind:
    name: str
    extract: Callable[[StatusEvent], Iterable[TrendableEntity]]
    is_eligible: Callable[[TrendableEntity], bool]
    attributes: Callable[[TrendableEntity], Dict[str, Any]]


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def _extract_tags(event: StatusEvent) -> List[TrendableEntity]:
    return [
        TrendableEntity(
            id=tag.id,
            kind="tags",
            trendable=tag.trendable,
            language=event.language,
            attributes={"name": tag.name, "usable": tag.usable},
            requires_review=tag.requires_review,
        )
        for tag in event.tags
    ]


def _tag_usable(entity: TrendableEntity) -> bool:
    return bool(entity.attributes.get("usable", True))


def _tag_attributes(entity: TrendableEntity) -> Dict[str, Any]:
    return {"name": entity.attributes.get("name")}


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


def _extract_links(event: StatusEvent) -> List[TrendableEntity]:
    return [
        TrendableEntity(
            id=link.id,
            kind="links",
            trendable=link.trendable,
            language=event.language,
            attributes={"url": link.url, "title": link.title, "type": link.type},
            requires_review=link.requires_review,
        )
        for link in event.links
    ]


def _link_usable(entity: TrendableEntity) -> bool:
    return entity.attributes.get("type") == "link" and bool(entity.attributes.get("url"))


def _link_attributes(entity: TrendableEntity) -> Dict[str, Any]:
    return {"url": entity.attributes.get("url"), "title": entity.attributes.get("title")}


# ---------------------------------------------------------------------------
# Statuses
# ---------------------------------------------------------------------------


def _extract_status(event: StatusEvent) -> List[TrendableEntity]:
    return [
        TrendableEntity(
            id=event.status_id,
            kind="statuses",
            trendable=event.account_discoverable and not event.sensitive,
            language=event.language,
            attributes={
                "account_id": event.account_id,
                "url": event.url,
                "in_reply_to_id": event.in_reply_to_id,
                "sensitive": event.sensitive,
            },
        )
    ]


def _status_usable(entity: TrendableEntity) -> bool:
    return entity.attributes.get("in_reply_to_id") is None and not entity.attributes.get("sensitive", False)


def _status_attributes(entity: TrendableEntity) -> Dict[str, Any]:
    return {"account_id": entity.attributes.get("account_id"), "url": entity.attributes.get("url")}


TAGS = TrendKind("tags", _extract_tags, _tag_usable, _tag_attributes)
LINKS = TrendKind("links", _extract_links, _link_usable, _link_attributes)
STATUSES = TrendKind("statuses", _extract_status, _status_usable, _status_attributes)

BUILTIN_KINDS: Dict[str, TrendKind] = {kind.name: kind for kind in (TAGS, LINKS, STATUSES)}


def get_kind(name: str) -> TrendKind:
    try:
        return BUILTIN_KINDS[name]
    except KeyError:
        raise UnknownTrendKindError(name) from None
