"""NLTK part-of-speech keyword extractor.

Tags each query with NLTK's averaged-perceptron tagger and keeps common and
proper nouns (``NN``, ``NNS``, ``NNP``, ``NNPS``) longer than two
characters.  The tagger model is downloaded lazily on first use.

The tagger is English-only.  Queries in other languages mostly come back
as a handful of mis-tagged tokens or nothing at all, which simply lowers
or disables the keyword component of fusion for that turn.
"""

from __future__ import annotations

import threading

import nltk
import structlog
from nltk.tokenize import wordpunct_tokenize

from src.interfaces.keyword_extractor import IKeywordExtractor

logger = structlog.get_logger(logger_name=__name__)

_NOUN_TAGS = frozenset({"NN", "NNS", "NNP", "NNPS"})
_MIN_KEYWORD_LENGTH = 3

# Resource names changed in NLTK 3.9; both are fetched so either version works.
_TAGGER_RESOURCES = (
    ("taggers/averaged_perceptron_tagger_eng", "averaged_perceptron_tagger_eng"),
    ("taggers/averaged_perceptron_tagger", "averaged_perceptron_tagger"),
)

_resource_lock = threading.Lock()
_resources_ready = False


def _ensure_tagger() -> None:
    global _resources_ready
    with _resource_lock:
        if _resources_ready:
            return
        for resource_path, package in _TAGGER_RESOURCES:
            try:
                nltk.data.find(resource_path)
            except LookupError:
                logger.info("nltk_resource_download", package=package)
                nltk.download(package, quiet=True)
        _resources_ready = True


class NltkKeywordExtractor(IKeywordExtractor):
    """Extracts nouns from query texts with ``nltk.pos_tag``."""

    def extract(self, texts: list[str]) -> list[str]:
        try:
            _ensure_tagger()
            tagged = [nltk.pos_tag(tokens) for tokens in map(wordpunct_tokenize, texts) if tokens]
        except LookupError as exc:
            # Offline machine without the tagger model: fusion falls back to
            # standardized-score ranking.
            logger.warning("keyword_tagging_unavailable", error=str(exc))
            return []

        seen: set[str] = set()
        keywords: list[str] = []
        for sentence in tagged:
            for token, tag in sentence:
                if tag not in _NOUN_TAGS or len(token) < _MIN_KEYWORD_LENGTH:
                    continue
                if token in seen:
                    continue
                seen.add(token)
                keywords.append(token)
        logger.debug("keywords_extracted", count=len(keywords))
        return keywords
