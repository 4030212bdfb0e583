from __future__ import annotations

from src.concierge.core.state_machine import Segmenter
from src.concierge.domain.events import MessageIds
from src.concierge.services.policies import TopicPolicy

from .utils import feed_all, wire


def _tokens(line: str):
    words = line.split(" ")
    return [words[0]] + [" " + w for w in words[1:]] + ["\n"]


def test_topic_line_yields_topic_event():
    seg = Segmenter(TopicPolicy(), MessageIds(2))
    batches = feed_all(seg, ["1", ".", " What", " styles", " suit", " a", " modern", " home", "?", " |", " Home", " Decor", "\n"])
    assert [wire(b) for b in batches] == [
        [{"id": 0, "query": "What styles suit a modern home?", "topic": "home decor", "selected": False}]
    ]


def test_topic_ids_run_over_emitted_topics_only():
    seg = Segmenter(TopicPolicy(), MessageIds(3))
    tokens = (
        _tokens("Sure, here are a few ideas:")
        + _tokens("1. Which artists fit a cozy den? | Cozy Artists")
        + ["\n"]
        + _tokens("2. How should I frame prints? | Framing Tips")
    )
    events = [e.to_wire() for batch in feed_all(seg, tokens) for e in batch]
    assert [e["id"] for e in events] == [0, 1]
    assert events[1]["query"] == "How should I frame prints?"
    assert events[1]["topic"] == "framing tips"


def test_topic_policy_does_not_track_sentences():
    seg = Segmenter(TopicPolicy(), MessageIds(1))
    feed_all(seg, ["Why", " not", " now", "?", " Maybe", "."])
    assert seg.state.sentences == []
    assert seg.state.sentence == ""
