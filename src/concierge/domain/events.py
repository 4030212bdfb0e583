"""Structured events emitted to the UI, one JSON array per frame."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

EventType = Literal["response", "response.update", "thread", "products", "followup-offer"]

FOLLOWUP_PROMPT = "Would you like some specific recommendations?"
FOLLOWUP_OPTIONS = ["Yes, show me some options!", "No thanks, just browsing."]


class EventData(BaseModel):
    display: bool = True
    intent: Optional[str] = None
    query: Optional[str] = None
    context: Optional[str] = None
    target: Optional[str] = None
    options: Optional[List[str]] = None


class OutputEvent(BaseModel):
    id: str
    type: EventType
    role: Literal["assistant"] = "assistant"
    data: EventData = Field(default_factory=EventData)
    content: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TopicEvent(BaseModel):
    """Suggested follow-up question; the UI toggles ``selected``."""

    id: int
    query: str
    topic: str
    selected: bool = False

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump()


Event = Union[OutputEvent, TopicEvent]
EventBatch = List[Event]


@dataclass(frozen=True)
class MessageIds:
    """Derives stable message identifiers for one completion request.

    ``outer_index`` is the number of conversation messages the client sent;
    inner indexes count finalized assistant messages within the reply.
    """

    outer_index: int

    @property
    def prefix(self) -> str:
        return f"msg-00000-{self.outer_index:04d}"

    def message(self, index: int) -> str:
        return f"{self.prefix}-{index:03d}"

    def products(self, index: int) -> str:
        return f"{self.message(index)}-a"


def response_event(event_id: str, content: str, *, display: bool = True) -> OutputEvent:
    return OutputEvent(id=event_id, type="response", data=EventData(display=display), content=content)


def update_event(event_id: str, content: str) -> OutputEvent:
    return OutputEvent(id=event_id, type="response.update", data=EventData(display=True), content=content)


def thread_events(
    ids: MessageIds,
    index: int,
    *,
    content: str,
    intent: str,
    query: str,
    context: str,
    display: bool,
) -> EventBatch:
    """A thread message and its products placeholder, always emitted together."""
    thread = OutputEvent(
        id=ids.message(index),
        type="thread",
        data=EventData(
            display=display,
            intent=intent,
            query=query,
            context=context,
            target=ids.products(index),
        ),
        content=content,
    )
    products = OutputEvent(id=ids.products(index), type="products", data=EventData(display=False))
    return [thread, products]


def followup_offer_event(event_id: str) -> OutputEvent:
    return OutputEvent(
        id=event_id,
        type="followup-offer",
        data=EventData(display=True, options=list(FOLLOWUP_OPTIONS)),
        content=FOLLOWUP_PROMPT,
    )
