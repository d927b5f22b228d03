"""Keyword extractor implementations."""

from src.providers.keywords.nltk_keyword_extractor import NltkKeywordExtractor

__all__ = ["NltkKeywordExtractor"]
