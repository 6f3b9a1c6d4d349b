"""
Chunking: generalize repeated episodes into semantic patterns.

Pure helpers used by AgentMemoryStore after each recorded episode. Episodes
are grouped by page; any page with enough successful episodes becomes a
candidate pattern whose context is what all of them had in common.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Sequence
from uuid import UUID

from pydantic import BaseModel

from .schemas import EpisodicMemory

MIN_GROUP_SIZE = 3
MAX_PATTERN_CONFIDENCE = 0.9


class PatternCandidate(BaseModel):
    concept: str
    pattern: Dict[str, Any]
    confidence: float
    episode_ids: List[UUID]


def concept_name(event_type: str, page_id: str) -> str:
    return f"{event_type}_pattern_{page_id}"


def pattern_confidence(group_size: int) -> float:
    """min(n / 10, 0.9)"""
    return min(group_size / 10, MAX_PATTERN_CONFIDENCE)


def merge_contexts(contexts: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Value intersection of context dicts.

    A key survives only if every context has it with an equal value; keys that
    are present everywhere but disagree are dropped rather than reported with
    the first episode's value.
    """
    if not contexts:
        return {}

    first = contexts[0] or {}
    merged: Dict[str, Any] = {}
    for key, value in first.items():
        if all(ctx is not None and key in ctx and ctx[key] == value for ctx in contexts[1:]):
            merged[key] = value
    return merged


def extract_common_patterns(episodes: Sequence[EpisodicMemory]) -> List[PatternCandidate]:
    """Group episodes by page and emit a candidate for each large-enough group.

    Group order follows first appearance in `episodes` (newest first when fed
    from a recall-ordered query).
    """
    groups: "OrderedDict[str, List[EpisodicMemory]]" = OrderedDict()
    for episode in episodes:
        groups.setdefault(episode.page_id, []).append(episode)

    candidates: List[PatternCandidate] = []
    for page_id, group in groups.items():
        if len(group) < MIN_GROUP_SIZE:
            continue

        event_type = group[0].event_type
        candidates.append(
            PatternCandidate(
                concept=concept_name(event_type, page_id),
                pattern={
                    "page_id": page_id,
                    "event_type": event_type,
                    "common_context": merge_contexts([e.context for e in group]),
                },
                confidence=pattern_confidence(len(group)),
                episode_ids=[e.id for e in group],
            )
        )

    return candidates
