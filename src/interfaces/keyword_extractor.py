"""Abstract base class for salient-keyword extraction.

Result fusion rewards chunks that literally contain the nouns of the
transformed queries.  Which nouns count depends on a language-specific
part-of-speech tagger, so the tagger sits behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: NltkKeywordExtractor (src/providers/keywords/)
class IKeywordExtractor(ABC):
    """Contract for extracting keywords from query texts."""

    @abstractmethod
    def extract(self, texts: list[str]) -> list[str]:
        """Return de-duplicated keywords (first-seen order) found in *texts*.

        Implementations keep common and proper nouns longer than two
        characters.  An empty list is a valid answer and turns keyword
        scoring off for the turn.
        """
