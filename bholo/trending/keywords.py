"""Keyword extraction from post text.

Heuristics only, no model calls:
1. Runs of two or more capitalized words become one multi-word topic
   ("Inter Miami"), and the words inside them are claimed.
2. Hashtags are always kept, without the ``#``.
3. Other words are kept unless they are stop words, two characters or
   shorter, or already claimed by a phrase.

No stemming: "goal" and "goals" are different topics.
"""

import re
from typing import Set

STOP_WORDS = frozenset({
    'i', 'me', 'my', 'myself', 'we', 'our', 'ours', 'ourselves', 'you', 'your',
    'yours', 'yourself', 'yourselves', 'he', 'him', 'his', 'himself', 'she', 'her',
    'hers', 'herself', 'it', 'its', 'itself', 'they', 'them', 'their', 'theirs',
    'themselves', 'what', 'which', 'who', 'whom', 'this', 'that', 'these', 'those',
    'am', 'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had',
    'having', 'do', 'does', 'did', 'doing', 'a', 'an', 'the', 'and', 'but', 'if',
    'or', 'because', 'as', 'until', 'while', 'of', 'at', 'by', 'for', 'with',
    'about', 'against', 'between', 'into', 'through', 'during', 'before', 'after',
    'above', 'below', 'to', 'from', 'up', 'down', 'in', 'out', 'on', 'off', 'over',
    'under', 'again', 'further', 'then', 'once', 'here', 'there', 'when', 'where',
    'why', 'how', 'all', 'any', 'both', 'each', 'few', 'more', 'most', 'other',
    'some', 'such', 'no', 'nor', 'not', 'only', 'own', 'same', 'so', 'than', 'too',
    'very', 's', 't', 'can', 'will', 'just', 'don', 'should', 'now',
})

MIN_WORD_LENGTH = 3

CAPITALIZED_PHRASE_RE = re.compile(r"\b[A-Z][A-Za-z']*(?:[ \t]+[A-Z][A-Za-z']*)+")
PUNCTUATION_RE = re.compile(r"[.,!?:;()\"']")


def extract_keywords(text: str) -> Set[str]:
    """
    Derive candidate topics from free text.

    Args:
        text: Post content

    Returns:
        Distinct lowercase topics; empty for empty or whitespace-only text

    Examples:
        >>> sorted(extract_keywords("What a goal by Messi in the Inter Miami game!"))
        ['game', 'goal', 'inter miami', 'messi']
        >>> sorted(extract_keywords("#VAR ruined it"))
        ['ruined', 'var']
    """
    if not text or not text.strip():
        return set()

    topics: Set[str] = set()
    claimed: Set[str] = set()

    for match in CAPITALIZED_PHRASE_RE.finditer(text):
        phrase = ' '.join(match.group(0).split()).lower()
        topics.add(phrase)
        claimed.update(PUNCTUATION_RE.sub('', word) for word in phrase.split())

    for token in PUNCTUATION_RE.sub('', text).split():
        if token.startswith('#'):
            tag = token[1:].lower()
            if tag:
                topics.add(tag)
            continue

        word = token.lower()
        if word in STOP_WORDS or len(word) < MIN_WORD_LENGTH or word in claimed:
            continue
        topics.add(word)

    return topics
