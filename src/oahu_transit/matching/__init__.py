"""Fuzzy matching of free-text places against stop names."""

from oahu_transit.matching.normalizers import (
    get_meaningful_tokens,
    normalize_text,
    parse_cross_street,
    remove_diacritics,
)
from oahu_transit.matching.stop_matcher import StopMatch, StopNameIndex, match_stops

__all__ = [
    # Matchers
    "match_stops",
    "StopMatch",
    "StopNameIndex",
    # Normalizers
    "normalize_text",
    "remove_diacritics",
    "parse_cross_street",
    "get_meaningful_tokens",
]
