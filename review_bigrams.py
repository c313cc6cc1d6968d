"""
Review text tokenization and bigram frequency tables.

Reviews are split into rating cohorts (high / low), each cohort's text is
joined, tokenized, filtered against a stopword list and turned into adjacent
bigrams. Frequencies are ranked by count with ties in first-seen order and
truncated only after everything has been counted.
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple

import pandas as pd

from analysis_config import (
    ConfigurationError,
    DEFAULT_HIGH_RATING,
    DEFAULT_LOW_RATING,
    DEFAULT_TOP_BIGRAMS,
    require_rating_cohorts,
    require_top_k,
)
from book_records import Record

LOGGER = logging.getLogger(__name__)

DEFAULT_STOPWORDS: FrozenSet[str] = frozenset(
    {
        # function words
        "the", "and", "a", "to", "of", "in", "it", "is", "that", "this", "for", "on", "was", "can",
        "with", "as", "but", "be", "are", "at", "by", "an", "from", "i", "you", "they",
        "we", "he", "she", "them", "my", "your", "their", "so", "if", "not", "or", "just",
        "me", "what", "when", "how", "who", "why", "had", "have", "has", "been", "will",
        "its", "too", "very", "also", "because", "while", "than", "then", "there", "here",
        "which", "were", "would", "could", "should", "into", "out", "about", "more",
        "most", "such", "only", "other", "some", "any", "really",
        "ever", "maybe", "perhaps", "quite", "even", "still", "yet", "though", "his", "him", "her",
        # pronouns and contractions
        "im", "ive", "id", "ill", "youre", "youve", "youll", "theyre", "theyve", "theyll",
        "wasnt", "dont", "doesnt", "didnt", "cant", "couldnt", "shouldnt",
        "isnt", "arent", "werent", "theres", "heres", "hes", "shes",
        # review filler
        "book", "read", "reading", "reads", "reader", "review",
        "one", "two", "first", "second", "third", "thing", "things",
        "bit", "kind", "sort", "way",
        # noisy adjectives
        "pretty", "rather", "basically", "literally", "honestly",
        "actually", "obviously", "definitely", "different", "same", "like",
        # time and meta words
        "finally", "overall", "however", "through", "during", "after", "before",
        "chapter", "chapters", "page", "pages", "copy",
        # conversational fluff
        "well", "um", "uh", "yeah", "lol", "haha", "oh", "okay", "ok",
        # low-content verbs
        "make", "makes", "made", "get", "gets", "got", "go", "goes", "went", "see",
        "seems", "seemed", "feel", "feels", "think", "thought",
        # rating vocabulary
        "spoiler", "spoilers", "summary", "synopsis", "reviewer", "rating", "stars", "star",
    }
)

TOKEN_SPLIT = re.compile(r"[\s.]+")
LEADING_PUNCT = re.compile(r"^[“‘\"\-—()\[\]{}]+")
TRAILING_PUNCT = re.compile(r"[;:.!?()\[\]{},\"'’”\-—]+$")
POSSESSIVE = re.compile(r"['’]s$")


@dataclass(frozen=True)
class TokenizerConfig:
    stopwords: FrozenSet[str] = DEFAULT_STOPWORDS
    max_token_length: int = 30

    def validate(self) -> "TokenizerConfig":
        if self.max_token_length <= 0:
            raise ConfigurationError(f"max_token_length must be positive, got {self.max_token_length}")
        return self


DEFAULT_TOKENIZER = TokenizerConfig()


@dataclass(frozen=True)
class NgramFrequency:
    text: str
    count: int


# ----------------------------
# Tokens and n-grams
# ----------------------------
def clean_token(raw: str, max_length: int = 30) -> str:
    token = LEADING_PUNCT.sub("", raw)
    token = TRAILING_PUNCT.sub("", token)
    token = POSSESSIVE.sub("", token)
    return token[:max_length].lower()


def tokenize(text: str, config: TokenizerConfig = DEFAULT_TOKENIZER) -> List[str]:
    config.validate()
    if not text:
        return []
    tokens = []
    for raw in TOKEN_SPLIT.split(text):
        token = clean_token(raw, config.max_token_length)
        if token and token not in config.stopwords:
            tokens.append(token)
    return tokens


def bigrams(tokens: Sequence[str]) -> List[str]:
    return [f"{tokens[i]} {tokens[i + 1]}" for i in range(len(tokens) - 1)]


def rollup_ngrams(ngrams: Iterable[str], top_k: int = DEFAULT_TOP_BIGRAMS) -> List[NgramFrequency]:
    require_top_k(top_k)
    counts = Counter(ngrams)
    # Counter keeps first-seen order and sorted() is stable, so ties stay in that order
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])
    return [NgramFrequency(text=text, count=count) for text, count in ranked[:top_k]]


# ----------------------------
# Review cohorts
# ----------------------------
def partition_reviews(
    records: Iterable[Record],
    high: float = DEFAULT_HIGH_RATING,
    low: float = DEFAULT_LOW_RATING,
) -> Tuple[List[Record], List[Record]]:
    """Split reviews into (rating >= high, rating < low); unrated reviews go nowhere."""
    require_rating_cohorts(high, low)
    high_rated, low_rated = [], []
    for record in records:
        if record.rating is None:
            continue
        if record.rating >= high:
            high_rated.append(record)
        elif record.rating < low:
            low_rated.append(record)
    return high_rated, low_rated


def review_bigrams(
    records: Iterable[Record],
    top_k: int = DEFAULT_TOP_BIGRAMS,
    config: TokenizerConfig = DEFAULT_TOKENIZER,
) -> List[NgramFrequency]:
    """Bigram table over the concatenated text of ``records``."""
    require_top_k(top_k)
    config.validate()
    text = " ".join(r.content for r in records if r.content)
    tokens = tokenize(text, config)
    pairs = bigrams(tokens)
    LOGGER.debug("Review text: %s tokens, %s bigrams", len(tokens), len(pairs))
    return rollup_ngrams(pairs, top_k)


def cohort_bigrams(
    records: Iterable[Record],
    top_k: int = DEFAULT_TOP_BIGRAMS,
    high: float = DEFAULT_HIGH_RATING,
    low: float = DEFAULT_LOW_RATING,
    config: TokenizerConfig = DEFAULT_TOKENIZER,
) -> Dict[str, List[NgramFrequency]]:
    require_top_k(top_k)
    high_rated, low_rated = partition_reviews(records, high, low)
    return {
        "high": review_bigrams(high_rated, top_k, config),
        "low": review_bigrams(low_rated, top_k, config),
    }


def ngrams_frame(frequencies: Sequence[NgramFrequency]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"text": f.text, "count": f.count} for f in frequencies],
        columns=["text", "count"],
    )
