from dataclasses import dataclass

from rapidfuzz import fuzz

from oahu_transit.matching.normalizers import (
    get_meaningful_tokens,
    normalize_text,
    parse_cross_street,
)
from oahu_transit.models.gtfs import FeedSnapshot, Stop

# Fixed score for cross-street matches (prevents them from outscoring exact matches)
CROSS_STREET_SCORE = 85.0
CROSS_STREET_PARTIAL_SCORE = 70.0

DEFAULT_MIN_SCORE = 70.0


@dataclass(frozen=True)
class IndexedStop:
    stop: Stop
    normalized_name: str
    tokens: frozenset[str]


@dataclass(frozen=True)
class StopMatch:
    stop: Stop
    score: float


class StopNameIndex:
    """Normalized stop names for one snapshot, computed once."""

    def __init__(self, snapshot: FeedSnapshot):
        self.snapshot = snapshot
        self.stops: list[IndexedStop] = []
        for stop in snapshot.stops:
            normalized = normalize_text(stop.stop_name)
            self.stops.append(
                IndexedStop(stop, normalized, frozenset(get_meaningful_tokens(normalized)))
            )


_index: StopNameIndex | None = None


def get_index(snapshot: FeedSnapshot) -> StopNameIndex:
    """Index for this snapshot, rebuilt whenever a new snapshot is passed in."""
    global _index
    if _index is None or _index.snapshot is not snapshot:
        _index = StopNameIndex(snapshot)
    return _index


def _compute_fuzzy_score(
    query_normalized: str,
    target_normalized: str,
    query_tokens: set[str],
    target_tokens: frozenset[str],
) -> float:
    """Blend token_set_ratio and partial_ratio with token coverage.

    Returns:
        Score in 0-100 range
    """
    token_score = fuzz.token_set_ratio(query_normalized, target_normalized)
    partial_score = fuzz.partial_ratio(query_normalized, target_normalized)
    base_score = token_score * 0.7 + partial_score * 0.3

    if not query_tokens or not target_tokens:
        return base_score

    overlap = query_tokens & target_tokens
    query_coverage = len(overlap) / len(query_tokens)
    target_coverage = len(overlap) / len(target_tokens)
    coverage_score = query_coverage * 0.7 + target_coverage * 0.3

    if len(query_tokens) == 1 and partial_score >= 75:
        # single-word queries ("kalihi") rarely line up token-for-token
        score = partial_score * 0.85 + token_score * 0.15
    else:
        score = base_score * 0.70 + (coverage_score * 100) * 0.30

    if query_coverage == 1.0 and len(query_tokens) >= 2:
        score += min(10.0, len(query_tokens) * 4.0)

    return min(100.0, score)


def _match_cross_street(
    streets: tuple[str, str], stops: list[IndexedStop]
) -> dict[str, float]:
    street1, street2 = streets
    scores: dict[str, float] = {}
    for indexed in stops:
        has_street1 = street1 in indexed.normalized_name
        has_street2 = street2 in indexed.normalized_name
        if has_street1 and has_street2:
            scores[indexed.stop.stop_id] = CROSS_STREET_SCORE
        elif has_street1 or has_street2:
            scores[indexed.stop.stop_id] = CROSS_STREET_PARTIAL_SCORE
    return scores


def match_stops(
    query: str,
    snapshot: FeedSnapshot,
    limit: int = 5,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[StopMatch]:
    """Rank snapshot stops by how well their names match free text.

    An exact stop id match always ranks first with score 100.
    """
    if not query.strip() or snapshot.is_empty:
        return []

    exact = snapshot.get_stop(query.strip())
    if exact is not None:
        return [StopMatch(exact, 100.0)]

    index = get_index(snapshot)
    query_normalized = normalize_text(query)
    query_tokens = get_meaningful_tokens(query_normalized)

    cross_scores: dict[str, float] = {}
    streets = parse_cross_street(query)
    if streets:
        cross_scores = _match_cross_street(streets, index.stops)

    matches: list[StopMatch] = []
    for indexed in index.stops:
        score = _compute_fuzzy_score(
            query_normalized, indexed.normalized_name, query_tokens, indexed.tokens
        )
        score = max(score, cross_scores.get(indexed.stop.stop_id, 0.0))
        if score >= min_score:
            matches.append(StopMatch(indexed.stop, round(score, 1)))

    matches.sort(key=lambda m: (-m.score, m.stop.stop_id))
    return matches[:limit]
