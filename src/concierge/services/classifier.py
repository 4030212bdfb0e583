"""Lexical classification of finalized assistant messages.

A message is either a plain ``response`` or a recommendation ``thread``.
Threads carry an intent (``recommendation.<kind>.list-item``) and a search
query derived from the message text. Everything here is a pure function of
the message text so it can be exercised without the streaming machinery.

Entity markup used by the model: ``{label|kind}`` where kind is ``artist``
or ``artwork``; anything else (or no kind) falls back to ``style``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional, Tuple

_ENTITY_RE = re.compile(r"\{(.*?)\}")
_LIST_ITEM_RE = re.compile(r"^(\d|-)")
_ORDINAL_RE = re.compile(r"^(\d+\.\s*|-\s+)")
_SPACES_RE = re.compile(r"\s{2,}")

STYLE_DISCLAIMER = "Here are a few pieces with similar style from our community:"

MessageKind = Literal["response", "thread"]


@dataclass(frozen=True)
class Entity:
    marker: str
    label: str
    kind: Optional[str]
    start: int
    end: int


@dataclass(frozen=True)
class Classification:
    kind: MessageKind
    content: str
    entity: Optional[Entity] = None
    recommendation: Optional[str] = None
    query: Optional[str] = None

    @property
    def is_thread(self) -> bool:
        return self.kind == "thread"

    @property
    def intent(self) -> Optional[str]:
        if not self.recommendation:
            return None
        return f"recommendation.{self.recommendation}.list-item"


def find_entity(text: str) -> Optional[Entity]:
    """Return the first ``{label|kind}`` marker in ``text``.

    A marker without ``|`` is kept with the whole contents as its label.
    """
    match = _ENTITY_RE.search(text)
    if not match:
        return None
    parts = match.group(1).split("|")
    label = parts[0].strip()
    kind = parts[1].strip().lower() if len(parts) > 1 else ""
    return Entity(
        marker=match.group(0),
        label=label,
        kind=kind or None,
        start=match.start(),
        end=match.end(),
    )


def is_list_item(text: str) -> bool:
    return bool(_LIST_ITEM_RE.match(text.lstrip()))


def strip_ordinal(text: str) -> str:
    """Drop a leading ``N. `` ordinal or ``- `` bullet."""
    return _ORDINAL_RE.sub("", text.lstrip(), count=1)


def strip_marker(text: str, entity: Entity) -> str:
    before = text[: entity.start]
    after = text[entity.end :]
    # Keep the label inline unless the sentence already names it.
    replacement = entity.label if entity.label and entity.label not in before + after else ""
    return _SPACES_RE.sub(" ", before + replacement + after).strip()


def _artwork_query(query: str) -> str:
    by_pos = query.find(" by ")
    if by_pos <= 0:
        return query
    head = query[:by_pos]
    sep_pos = head.rfind("- ")
    if sep_pos < 0:
        sep_pos = head.rfind(": ")
    if sep_pos < 0:
        return query
    return query[sep_pos + 2 :]


def _by_follows_marker(text: str, entity: Entity) -> bool:
    by_pos = text.find(" by ", entity.end)
    return 0 <= by_pos - entity.end < 3


def resolve_recommendation(text: str, entity: Optional[Entity], query: str) -> Tuple[str, str]:
    """Pick the recommendation kind and narrow the query for it.

    ``text`` is the message still carrying its marker; ``query`` is the
    display text with the ordinal removed.
    """
    kind = entity.kind if entity else None
    if kind == "artist":
        _, sep, tail = query.partition(": ")
        return "artist", (tail if sep else query).strip()
    if kind == "artwork":
        return "artwork", _artwork_query(query).strip()
    if kind is not None and _by_follows_marker(text, entity):
        return "artwork", _artwork_query(query).strip()
    return "style", query.strip()


def classify_message(text: str, message_index: int) -> Classification:
    """Classify one newline-stripped message.

    ``message_index`` is the 1-based position of the message in the reply.
    List items are always threads; later messages become threads when they
    carry an entity marker.
    """
    entity = find_entity(text)
    threaded = is_list_item(text) or (message_index > 1 and entity is not None)
    if not threaded:
        content = text if entity is None else text.replace(entity.marker, entity.label, 1)
        return Classification(kind="response", content=content, entity=entity)

    display = strip_marker(text, entity) if entity else text.strip()
    recommendation, query = resolve_recommendation(text, entity, strip_ordinal(display))
    if recommendation == "style":
        display = " ".join(part for part in (display, STYLE_DISCLAIMER) if part)
    return Classification(
        kind="thread",
        content=display,
        entity=entity,
        recommendation=recommendation,
        query=query,
    )
