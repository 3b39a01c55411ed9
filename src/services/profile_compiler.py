"""Merge a user's base profile with their exclusion rules.

The effective profile is the text the discovery client sends to the AI
search endpoint.  Organizer, artist and venue rules become literal
"exclude" instructions.  ``event`` rules are soft: only the most recent
ones are used, and they ask the endpoint to lower the score of similar
events rather than drop them.

Pure transformation, no I/O.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from src.config.limits import DiscoveryLimits
from src.models.user import ExclusionRule, ExclusionType
from src.utils.errors import PreconditionError

_HARD_RULE_LABELS: tuple[tuple[ExclusionType, str], ...] = (
    (ExclusionType.ORGANIZER, "organizers"),
    (ExclusionType.ARTIST, "artists"),
    (ExclusionType.VENUE, "venues"),
)

_SECTION_HEADER = "EXCLUSIONS (the user explicitly dislikes these):"


def event_rule_phrase(value: str) -> str:
    """Return the human-readable part of an ``event`` rule (text before ``|``)."""
    return value.split("|", 1)[0].strip()


def compile_effective_profile(
    base_profile: str | None,
    rules: Sequence[ExclusionRule],
    limits: DiscoveryLimits | None = None,
) -> str:
    """Return *base_profile* with exclusion instructions appended.

    With no rules the base profile is returned unchanged.

    Raises
    ------
    PreconditionError
        If *base_profile* is missing or blank.
    """
    if base_profile is None or not base_profile.strip():
        raise PreconditionError("User profile not available")
    if not rules:
        return base_profile

    limits = limits or DiscoveryLimits()
    grouped: dict[ExclusionType, list[ExclusionRule]] = defaultdict(list)
    for rule in rules:
        grouped[rule.type].append(rule)

    lines: list[str] = []
    for rule_type, label in _HARD_RULE_LABELS:
        values = [r.value.strip() for r in grouped[rule_type] if r.value.strip()]
        if values:
            lines.append(f"- Exclude any event by these {label}: {', '.join(values)}")

    recent_event_rules = sorted(
        grouped[ExclusionType.EVENT], key=lambda r: r.created_at, reverse=True
    )[: limits.event_exclusion_limit]
    phrases = [p for p in (event_rule_phrase(r.value) for r in recent_event_rules) if p]
    if phrases:
        quoted = "; ".join(f'"{p}"' for p in phrases)
        lines.append(
            f"- The user disliked these events: {quoted}. For events similar to these "
            "(same or similar title, venue, artist, or type of event), reduce the score "
            f"by {limits.penalty_min}-{limits.penalty_max} points. Do not exclude them "
            "entirely."
        )

    if not lines:
        return base_profile
    return f"{base_profile.rstrip()}\n\n{_SECTION_HEADER}\n" + "\n".join(lines)
