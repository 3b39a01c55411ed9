"""Deduplication, scoring and selection of validated candidates.

Stages run in a fixed order, each consuming the previous stage's output:

1. Title dedup: first occurrence of each normalized title wins.
2. Score defaulting: candidates without a score get the neutral default.
3. Stable sort by score, descending.
4. Exclusion filtering on organizer / artist / venue (venue falls back to
   location).  ``event`` rules were already folded into the search prompt
   and are never hard filters.
5. Per-category cap, then a global re-sort.
6. Total cap with a floor: top ``max_events`` of the capped list, unless
   that under-delivers ``min_events``, in which case the top ``min_events``
   of the uncapped list.
7. An empty result raises :class:`NoEventsFoundError`.

Every stage is a plain function so it can be tested on its own;
:func:`select_events` chains them.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from src.config.limits import DiscoveryLimits
from src.models.event import CandidateEvent
from src.models.user import ExclusionRule, ExclusionType
from src.utils.errors import NoEventsFoundError
from src.utils.logging import get_logger
from src.utils.text_normalizer import normalize_title

logger = get_logger(__name__)

UNCATEGORIZED = "(uncategorized)"

_HARD_EXCLUSION_TYPES = (ExclusionType.ORGANIZER, ExclusionType.ARTIST, ExclusionType.VENUE)


# ---------------------------------------------------------------------------
# Stage 1-3: dedup, default scores, sort
# ---------------------------------------------------------------------------

def dedupe_by_title(candidates: Iterable[CandidateEvent]) -> list[CandidateEvent]:
    """Keep the first candidate for each normalized title.

    An empty normalized title never matches anything, so such candidates
    are all kept.
    """
    seen: set[str] = set()
    unique: list[CandidateEvent] = []
    for candidate in candidates:
        key = normalize_title(candidate.title)
        if key:
            if key in seen:
                continue
            seen.add(key)
        unique.append(candidate)
    return unique


def apply_default_score(
    candidates: Iterable[CandidateEvent], default_score: float
) -> list[CandidateEvent]:
    return [
        c if c.score is not None else c.model_copy(update={"score": float(default_score)})
        for c in candidates
    ]


def sort_by_score(candidates: Iterable[CandidateEvent]) -> list[CandidateEvent]:
    """Sort descending by score; ``sorted`` is stable so ties keep input order."""
    return sorted(candidates, key=lambda c: -(c.score or 0.0))


# ---------------------------------------------------------------------------
# Stage 4: exclusion filtering
# ---------------------------------------------------------------------------

def _field_for(candidate: CandidateEvent, rule_type: ExclusionType) -> str | None:
    if rule_type is ExclusionType.ORGANIZER:
        return candidate.organizer
    if rule_type is ExclusionType.ARTIST:
        return candidate.artist
    # Venue falls back to location when the endpoint gave no venue.
    venue = candidate.venue
    if venue is None or not venue.strip():
        return candidate.location
    return venue


def _matches(field_value: str | None, rule_value: str) -> bool:
    if not field_value:
        return False
    field_norm = field_value.strip().lower()
    if not field_norm:
        return False
    return rule_value in field_norm or field_norm in rule_value


def filter_exclusions(
    candidates: Iterable[CandidateEvent], rules: Sequence[ExclusionRule]
) -> list[CandidateEvent]:
    """Drop candidates whose organizer/artist/venue matches a rule of that type.

    Matching is case-insensitive substring containment in either direction.
    """
    values: dict[ExclusionType, list[str]] = defaultdict(list)
    for rule in rules:
        if rule.type in _HARD_EXCLUSION_TYPES:
            normalized = rule.value.strip().lower()
            if normalized:
                values[rule.type].append(normalized)

    candidates = list(candidates)
    if not values:
        return candidates

    kept: list[CandidateEvent] = []
    for candidate in candidates:
        excluded_by = next(
            (
                rule_type
                for rule_type, rule_values in values.items()
                if any(_matches(_field_for(candidate, rule_type), v) for v in rule_values)
            ),
            None,
        )
        if excluded_by is None:
            kept.append(candidate)
        else:
            logger.debug("event_excluded", title=candidate.title, rule_type=excluded_by.value)
    return kept


# ---------------------------------------------------------------------------
# Stage 5-6: category cap and total cap with floor
# ---------------------------------------------------------------------------

def category_key(category: str | None) -> str:
    key = (category or "").strip().lower()
    return key or UNCATEGORIZED


def cap_per_category(
    candidates: Sequence[CandidateEvent], cap: int
) -> list[CandidateEvent]:
    """Keep at most *cap* events per category, best scores first.

    Input is expected to be sorted by score already; the output is
    re-sorted globally so the invariant holds for unsorted input too.
    """
    taken: dict[str, int] = defaultdict(int)
    capped: list[CandidateEvent] = []
    for candidate in sort_by_score(candidates):
        key = category_key(candidate.category)
        if taken[key] < cap:
            taken[key] += 1
            capped.append(candidate)
    return sort_by_score(capped)


def apply_total_cap(
    ranked: Sequence[CandidateEvent],
    limits: DiscoveryLimits,
) -> list[CandidateEvent]:
    """Top ``max_events`` after the category cap, with a ``min_events`` floor.

    *ranked* is the exclusion-filtered, score-sorted list before any
    category capping.
    """
    capped = cap_per_category(ranked, limits.category_cap)[: limits.max_events]
    if len(capped) >= limits.min_events:
        return capped
    # The category cap starved the newsletter; fall back to the best
    # events regardless of category.
    return list(ranked[: limits.min_events])


# ---------------------------------------------------------------------------
# Full chain
# ---------------------------------------------------------------------------

def select_events(
    candidates: Sequence[CandidateEvent],
    rules: Sequence[ExclusionRule],
    limits: DiscoveryLimits | None = None,
) -> list[CandidateEvent]:
    """Run stages 1-7 and return the final selection, best score first.

    Raises
    ------
    NoEventsFoundError
        If nothing survives.
    """
    limits = limits or DiscoveryLimits()

    unique = dedupe_by_title(candidates)
    scored = apply_default_score(unique, limits.general_default_score)
    ranked = sort_by_score(scored)
    allowed = filter_exclusions(ranked, rules)
    final = apply_total_cap(allowed, limits)

    logger.info(
        "events_selected",
        candidates=len(candidates),
        after_dedup=len(unique),
        after_exclusions=len(allowed),
        selected=len(final),
    )

    if not final:
        logger.warning("discovery_no_valid_events", candidates=len(candidates))
        raise NoEventsFoundError()
    return final
