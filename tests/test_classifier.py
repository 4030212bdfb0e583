from __future__ import annotations

from src.concierge.services import classifier
from src.concierge.services.classifier import STYLE_DISCLAIMER, classify_message


def test_artwork_list_item_is_thread_with_artwork_intent():
    result = classify_message("1. Starry Night by Van Gogh {Starry Night|artwork}", 1)
    assert result.is_thread
    assert result.intent == "recommendation.artwork.list-item"
    assert result.content == "1. Starry Night by Van Gogh"
    assert result.query == "Starry Night by Van Gogh"


def test_artist_query_is_trimmed_after_colon():
    result = classify_message("2. Van Gogh: prolific post-impressionist {Van Gogh|artist}", 2)
    assert result.intent == "recommendation.artist.list-item"
    assert result.query == "prolific post-impressionist"
    assert result.content == "2. Van Gogh: prolific post-impressionist"


def test_artwork_query_keeps_text_after_dash_separator():
    result = classify_message("3. Impressionism - Water Lilies by Claude Monet {Water Lilies|artwork}", 3)
    assert result.query == "Water Lilies by Claude Monet"


def test_artwork_query_falls_back_to_colon_separator():
    result = classify_message("4. Classic pick: The Kiss by Gustav Klimt {The Kiss|artwork}", 3)
    assert result.query == "The Kiss by Gustav Klimt"


def test_marker_is_replaced_by_label_when_not_repeated():
    result = classify_message("1. {The Kiss|artwork} by Gustav Klimt", 1)
    assert result.content == "1. The Kiss by Gustav Klimt"
    assert result.query == "The Kiss by Gustav Klimt"


def test_plain_message_is_a_literal_response():
    text = "Hello there, art lover"
    result = classify_message(text, 1)
    assert result.kind == "response"
    assert result.content == text
    assert result.intent is None


def test_first_message_with_marker_stays_a_response():
    result = classify_message("I adore {Frida Kahlo|artist} and her palette", 1)
    assert result.kind == "response"
    assert result.content == "I adore Frida Kahlo and her palette"


def test_later_message_with_marker_becomes_thread():
    result = classify_message("You might enjoy {Frida Kahlo|artist}", 2)
    assert result.is_thread
    assert result.intent == "recommendation.artist.list-item"


def test_unmarked_list_item_falls_back_to_style_with_disclaimer():
    result = classify_message("- Mid-century modern prints", 2)
    assert result.is_thread
    assert result.intent == "recommendation.style.list-item"
    assert result.query == "Mid-century modern prints"
    assert result.content.endswith(STYLE_DISCLAIMER)


def test_malformed_marker_uses_whole_contents_as_label():
    entity = classifier.find_entity("1. Bold abstracts {Abstract Expressionism} by many")
    assert entity is not None
    assert entity.label == "Abstract Expressionism"
    assert entity.kind is None

    result = classify_message("1. Bold abstracts {Abstract Expressionism} by many", 1)
    assert result.intent == "recommendation.style.list-item"


def test_unknown_kind_followed_by_by_resolves_to_artwork():
    result = classify_message("1. {Nighthawks|painting} by Edward Hopper", 1)
    assert result.intent == "recommendation.artwork.list-item"


def test_unknown_kind_without_by_stays_style():
    result = classify_message("1. {Art Deco|movement} posters", 1)
    assert result.intent == "recommendation.style.list-item"


def test_strip_ordinal_and_list_detection():
    assert classifier.strip_ordinal("12. Cubism") == "Cubism"
    assert classifier.strip_ordinal("- Cubism") == "Cubism"
    assert classifier.strip_ordinal("Cubism 2.0") == "Cubism 2.0"
    assert classifier.is_list_item("  3. Pop art")
    assert not classifier.is_list_item("Pop art is fun")


def test_empty_marker_leaves_only_the_disclaimer():
    result = classify_message("{}", 2)
    assert result.is_thread
    assert result.intent == "recommendation.style.list-item"
    assert result.query == ""
    assert result.content == STYLE_DISCLAIMER
