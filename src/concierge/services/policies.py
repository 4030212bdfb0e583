"""Segmentation policies: what the segmenter emits for each reply variant.

``chat``     plain streaming, one event per finalized message.
``preview``  long first answers are cut to their first sentence early.
``query``    like ``preview``, plus a correction once the first message ends;
             finalized messages are not displayed directly.
``topics``   suggested follow-up questions, one per line.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from ..core.state_machine import SegmentationPolicy, SegmenterState
from ..domain.events import (
    EventBatch,
    MessageIds,
    TopicEvent,
    followup_offer_event,
    response_event,
    thread_events,
    update_event,
)
from ..errors import UnknownVariantError
from ..observability.metrics import REWRITES_TRIGGERED
from .classifier import classify_message, strip_ordinal

LOG = logging.getLogger("concierge.segmenter")

REWRITE_SENTENCE_LIMIT = 4
REWRITE_CHAR_LIMIT = 300
TOPIC_SEPARATOR = " | "


class ConversationPolicy(SegmentationPolicy):
    def __init__(self, name: str = "chat", *, rewrite: bool = True, corrections: bool = False, display: bool = True) -> None:
        self.name = name
        self.rewrite = rewrite
        self.corrections = corrections
        self.display = display

    def on_sentence(self, state: SegmenterState, sentence: str, ids: MessageIds) -> Optional[EventBatch]:
        if not self.rewrite or state.rewrite:
            return None
        if state.total_messages >= 1 or not state.message:
            return None
        completed = state.sentences + [sentence]
        if len(completed) <= REWRITE_SENTENCE_LIMIT and len(state.message) <= REWRITE_CHAR_LIMIT:
            return None

        state.rewrite = True
        REWRITES_TRIGGERED.labels(variant=self.name).inc()
        LOG.info(
            "segmenter_rewrite_triggered",
            extra={"sentences": len(completed), "chars": len(state.message)},
        )

        batch: EventBatch = [response_event(ids.message(0), completed[0], display=True)]
        question = next((s for s in completed[1:] if "?" in s or "!" in s), None)
        if question:
            batch.append(response_event(ids.message(1), question, display=False))
        else:
            batch.append(followup_offer_event(ids.message(1)))
        return batch

    def on_message(self, state: SegmenterState, text: str, ids: MessageIds) -> Optional[EventBatch]:
        if state.rewrite:
            # The early acknowledgement already stands in for the whole answer.
            if state.total_messages == 1 and self.corrections:
                return [update_event(ids.message(0), text)]
            return None

        index = state.total_messages - 1
        result = classify_message(text, state.total_messages)
        if result.is_thread:
            return thread_events(
                ids,
                index,
                content=result.content,
                intent=result.intent or "",
                query=result.query or "",
                context=state.context,
                display=self.display,
            )
        return [response_event(ids.message(index), result.content, display=self.display)]


class TopicPolicy(SegmentationPolicy):
    name = "topics"
    tracks_sentences = False

    def on_message(self, state: SegmenterState, text: str, ids: MessageIds) -> Optional[EventBatch]:
        parts = strip_ordinal(text.strip()).split(TOPIC_SEPARATOR)
        if len(parts) < 2:
            LOG.debug("topic_line_skipped", extra={"text": text})
            return None
        event = TopicEvent(id=state.topics_emitted, query=parts[0].strip(), topic=parts[1].strip().lower())
        state.topics_emitted += 1
        return [event]


VARIANTS: Dict[str, Callable[[], SegmentationPolicy]] = {
    "chat": lambda: ConversationPolicy("chat", rewrite=False),
    "preview": lambda: ConversationPolicy("preview", rewrite=True),
    "query": lambda: ConversationPolicy("query", rewrite=True, corrections=True, display=False),
    "topics": TopicPolicy,
}


def build_policy(variant: str) -> SegmentationPolicy:
    """Return a fresh policy for ``variant``; policies are cheap and per request."""
    factory = VARIANTS.get((variant or "").strip().lower())
    if factory is None:
        raise UnknownVariantError(variant)
    return factory()
