from __future__ import annotations

import json
from typing import Iterable, List, Optional

from src.concierge.core.state_machine import Segmenter
from src.concierge.domain.events import EventBatch


def delta_record(token: Optional[str]) -> str:
    delta = {} if token is None else {"content": token}
    return json.dumps({"choices": [{"index": 0, "delta": delta}]})


def sse_body(tokens: Iterable[str], *, done: bool = True) -> bytes:
    """Encode tokens the way the completion provider streams them."""
    records = [f"data: {delta_record(t)}\n\n" for t in tokens]
    if done:
        records.append("data: [DONE]\n\n")
    return "".join(records).encode("utf-8")


def split_bytes(body: bytes, size: int) -> List[bytes]:
    return [body[i : i + size] for i in range(0, len(body), size)]


def feed_all(segmenter: Segmenter, tokens: Iterable[str]) -> List[EventBatch]:
    batches: List[EventBatch] = []
    for token in tokens:
        batches.extend(segmenter.feed(token))
    return batches


def wire(batch: EventBatch) -> List[dict]:
    return [event.to_wire() for event in batch]


def parse_frames(body: bytes) -> List[List[dict]]:
    text = body.decode("utf-8")
    assert text == "" or text.endswith("||\n"), text
    return [json.loads(frame) for frame in text.split("||\n") if frame]


STARRY_NIGHT = [
    "1", ".", " Starry", " Night", " by", " Van", " Gogh", " {", "Starry", " Night", "|", "art", "work", "}", "\n",
]

VAN_GOGH = [
    "2", ".", " Van", " Gogh", ":", " prolific", " post", "-im", "pression", "ist",
    " {", "Van", " Gogh", "|", "artist", "}", "\n",
]

LONG_ANSWER = [
    "Sure", "!", " Impressionism", " is", " great", ".",
    " Monet", " led", " it", ".",
    " Light", " matters", ".",
    " Colors", " glow", ".",
    " Do", " you", " like", " it", "?",
    " Let", " me", " know", ".",
    "\n",
]
