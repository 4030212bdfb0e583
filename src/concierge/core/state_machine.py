"""Token-by-token segmenter for streamed completions.

The segmenter accumulates tokens into a sentence buffer and a message
buffer, detects sentence and message (line) boundaries, and hands each
boundary to a :class:`SegmentationPolicy` which decides what, if anything,
to emit. All mutable state lives in a request-scoped :class:`SegmenterState`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..domain.events import EventBatch, MessageIds

LOG = logging.getLogger("concierge.segmenter")

SENTENCE_PUNCTUATION = (".", "?", "!", ":")
# No boundary fires before this many tokens have been processed.
PRIMING_TOKENS = 3
# Shorter sentences are folded into the next one.
MIN_SENTENCE_CHARS = 4
# Shorter messages (blank lines, stray ordinals) are never finalized.
MIN_MESSAGE_CHARS = 4


class Phase(str, Enum):
    PRIMING = "priming"
    ACCUMULATING = "accumulating"
    REWRITING = "rewriting"


@dataclass
class SegmenterState:
    counter: int = 0
    sentence: str = ""
    sentences: List[str] = field(default_factory=list)
    message: str = ""
    full_message: str = ""
    total_messages: int = 0
    rewrite: bool = False
    context: str = ""
    topics_emitted: int = 0

    @property
    def phase(self) -> Phase:
        if self.rewrite:
            return Phase.REWRITING
        if self.counter < PRIMING_TOKENS:
            return Phase.PRIMING
        return Phase.ACCUMULATING


class SegmentationPolicy:
    """Decides what a segmenter emits at sentence and message boundaries.

    Subclasses override the hooks they care about. Hooks may mutate the state
    (e.g. latch ``rewrite``) and return a batch of events or ``None``.
    """

    name = "base"
    tracks_sentences = True

    def on_sentence(self, state: SegmenterState, sentence: str, ids: MessageIds) -> Optional[EventBatch]:
        return None

    def on_message(self, state: SegmenterState, text: str, ids: MessageIds) -> Optional[EventBatch]:
        return None


class Segmenter:
    def __init__(
        self,
        policy: SegmentationPolicy,
        ids: MessageIds,
        state: Optional[SegmenterState] = None,
    ) -> None:
        self.policy = policy
        self.ids = ids
        self.state = state or SegmenterState()

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def feed(self, token: str) -> List[EventBatch]:
        """Consume one token and return the batches it completed (usually none)."""
        state = self.state
        batches: List[EventBatch] = []

        # Streams commonly open with "\n\n"; nothing has been said yet.
        if state.counter < 1 and "\n" in token:
            LOG.debug("segmenter_prefix_skipped", extra={"token": token})
            return batches

        if self.policy.tracks_sentences:
            state.sentence += token
        state.message += token
        state.full_message += token

        if self.policy.tracks_sentences and self._is_sentence_boundary(token):
            sentence = state.sentence.strip()
            LOG.debug(
                "segmenter_sentence",
                extra={"total_messages": state.total_messages, "sentence": sentence},
            )
            batch = self.policy.on_sentence(state, sentence, self.ids)
            if batch:
                batches.append(batch)
            state.sentences.append(sentence)
            state.sentence = ""

        if state.counter >= PRIMING_TOKENS and "\n" in token:
            batch = self._close_message()
            if batch:
                batches.append(batch)

        state.counter += 1
        return batches

    def _is_sentence_boundary(self, token: str) -> bool:
        state = self.state
        if state.counter < PRIMING_TOKENS or len(state.sentence) < MIN_SENTENCE_CHARS:
            return False
        return any(mark in token for mark in SENTENCE_PUNCTUATION)

    def _close_message(self) -> Optional[EventBatch]:
        state = self.state
        batch: Optional[EventBatch] = None
        if len(state.message) >= MIN_MESSAGE_CHARS:
            state.total_messages += 1
            if state.sentences:
                state.context = state.sentences[0]
            text = state.message.replace("\n", "")
            LOG.debug(
                "segmenter_message",
                extra={"total_messages": state.total_messages, "phase": state.phase.value, "text": text},
            )
            batch = self.policy.on_message(state, text, self.ids)
        # A sentence never spans two lines.
        state.sentence = ""
        state.message = ""
        state.sentences = []
        return batch
