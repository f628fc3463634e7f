"""Tests for keyword extraction."""

from bholo.trending.keywords import STOP_WORDS, extract_keywords


def test_capitalized_run_becomes_one_topic():
    """Multi-word names are kept together and their words are not repeated alone."""
    topics = extract_keywords("What a goal by Messi in the Inter Miami game!")

    assert "inter miami" in topics
    assert "goal" in topics
    assert "game" in topics
    assert "inter" not in topics
    assert "miami" not in topics
    for stop_word in ("a", "in", "the", "by", "what"):
        assert stop_word not in topics


def test_single_capitalized_word_is_a_plain_keyword():
    assert extract_keywords("Haaland scores again") == {"haaland", "scores"}


def test_extraction_is_deterministic():
    text = "Kaizer Chiefs beat Orlando Pirates in the Soweto Derby #DStvPrem"

    assert extract_keywords(text) == extract_keywords(text)


def test_hashtags_are_kept_without_hash():
    topics = extract_keywords("#VAR ruined it #UCL")

    assert "var" in topics
    assert "ucl" in topics
    assert "#var" not in topics


def test_lone_hash_is_ignored():
    assert extract_keywords("# ok") == set()


def test_short_and_stop_words_dropped():
    topics = extract_keywords("it is so on for me and you")

    assert topics == set()


def test_punctuation_is_stripped():
    topics = extract_keywords("goal! (offside?) penalty, \"corner\"")

    assert topics == {"goal", "offside", "penalty", "corner"}


def test_no_stemming():
    topics = extract_keywords("goal goals")

    assert topics == {"goal", "goals"}


def test_empty_and_whitespace_text():
    assert extract_keywords("") == set()
    assert extract_keywords("   \n\t ") == set()


def test_results_never_contain_stop_words():
    text = "The manager said that they should have been there before the break"

    assert not extract_keywords(text) & STOP_WORDS
