"""
Pydantic schemas for the credence belief and memory engine.

All data structures shared by the belief engine, the memory store, and the
persistence backends are defined here.

Design Philosophy:
- Open key/value payloads (`content`, `context`, `condition`, `action`) stay
  plain dicts; the closed sets (evidence types, outcomes) are Literals
- Range invariants (probabilities, confidences, rates) are enforced by Field
  bounds so every backend round-trips valid records only
- Timestamps are timezone-aware UTC
"""

from pydantic import BaseModel, Field

from typing import Any, Dict, List, Literal, Optional
from datetime import datetime, timezone
from uuid import UUID, uuid4


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


EvidenceType = Literal["code_written", "user_feedback", "correction_made", "question_asked"]
Outcome = Literal["success", "failure", "partial"]
RuleOutcome = Literal["success", "failure"]


# ============================================================================
# Belief Schemas
# ============================================================================


class Evidence(BaseModel):
    """An observed event that carries information about one or more beliefs.

    `content` shape depends on `type`. Keys read by the likelihood table:
    - code_written: language, hasSemicolons
    - user_feedback: feedbackType
    - correction_made: correction
    - question_asked: question

    The snake_case spellings has_semicolons and feedback_type are accepted too.

    `confidence` is the evidence's self-reported reliability. It is kept for
    audit and does not enter the posterior computation.
    """

    type: EvidenceType = Field(..., description="Kind of observed event")
    content: Dict[str, Any] = Field(default_factory=dict, description="Type-specific payload")
    timestamp: datetime = Field(default_factory=utc_now, description="When it was observed")
    confidence: float = Field(1.0, ge=0.0, le=1.0, description="Reported reliability")

    model_config = {"frozen": True}


class Belief(BaseModel):
    """A named hypothesis about the user with its current probability."""

    key: str = Field(..., description="Registry key (e.g. prefers_typescript)")
    hypothesis: str = Field(..., description="Human-readable hypothesis")
    probability: float = Field(..., ge=0.0, le=1.0, description="Current belief strength")
    # Append-only audit trail of every evidence folded into this belief
    evidence: List[Evidence] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)


class CodeStyle(BaseModel):
    indentation: Literal["tabs", "spaces"] = "spaces"
    quotation: Literal["single", "double"] = "double"
    semicolons: bool = True


class CommunicationStyle(BaseModel):
    verbosity: Literal["concise", "detailed", "balanced"] = "balanced"
    technical_level: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    preferred_examples: bool = True


class UserPreference(BaseModel):
    """Concrete configuration derived from belief state.

    Never authoritative on its own: the engine regenerates it from the session
    baseline and the current belief probabilities after every update.
    """

    preferred_language: str = "typescript"
    preferred_framework: str = "react"
    code_style: CodeStyle = Field(default_factory=CodeStyle)
    communication_style: CommunicationStyle = Field(default_factory=CommunicationStyle)
    quality_threshold: float = Field(95, ge=0, le=100)


class ResponseParameters(BaseModel):
    """Knobs a response generator reads to adapt its output."""

    style: str
    include_examples: bool
    technical_level: str
    quality_target: float


# ============================================================================
# Agent Memory Schemas
# ============================================================================


class EpisodicMemory(BaseModel):
    """A single recorded experience of an agent.

    Immutable after creation except for the retrieval tracking fields, which
    every recall bumps.
    """

    id: UUID = Field(default_factory=uuid4, description="Unique episode identifier")
    agent_id: str = Field(..., description="Agent who lived this episode")
    page_id: str = Field(..., description="Page/context the episode happened on")
    event_type: str = Field(..., description="Kind of event (audit, fix, deploy, ...)")
    context: Dict[str, Any] = Field(default_factory=dict, description="Situation payload")
    outcome: Outcome = Field(..., description="success, failure or partial")
    surprise_score: float = Field(0.5, ge=0.0, le=1.0, description="How unexpected the outcome was")
    # +1 success, -1 failure, 0 partial
    emotional_valence: float = Field(0.0, ge=-1.0, le=1.0)
    salience: float = Field(0.5, ge=0.0, le=1.0, description="How memorable the episode is")
    retrieval_count: int = Field(0, ge=0)
    last_retrieved_at: Optional[datetime] = None
    timestamp: datetime = Field(default_factory=utc_now)


class SemanticMemory(BaseModel):
    """A generalized pattern distilled from similar successful episodes."""

    id: UUID = Field(default_factory=uuid4)
    agent_id: str
    # Unique per agent, e.g. "audit_pattern_/profile"
    concept: str
    pattern: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(..., ge=0.0, le=1.0)
    learned_from_count: int = Field(0, ge=0)
    # Weak back-references into episodic memory (lookup only, no ownership)
    episode_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProceduralMemory(BaseModel):
    """A condition -> action production rule with a learned success rate.

    `success_rate` only moves on real application outcomes;
    `mental_simulation_count` tracks how often the rule was merely tested.
    """

    id: UUID = Field(default_factory=uuid4)
    agent_id: str
    rule_name: str = Field(..., description="Globally unique rule name")
    condition: Dict[str, Any] = Field(default_factory=dict, description="Keys that must be present")
    action: Dict[str, Any] = Field(default_factory=dict, description="Payload applied on match")
    description: Optional[str] = None
    success_rate: float = Field(0.5, ge=0.0, le=1.0)
    learning_rate: float = Field(0.1, gt=0.0, le=1.0, description="EMA step size")
    application_count: int = Field(0, ge=0)
    last_application_outcome: Optional[RuleOutcome] = None
    mental_simulation_count: int = Field(0, ge=0)
    priority: int = 0
    enabled: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class MentalSimulationResult(BaseModel):
    success: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    simulated_outcome: Optional[Dict[str, Any]] = None


class ChunkingConfig(BaseModel):
    """Thresholds for generalizing episodes into semantic memories."""

    min_episodes: int = Field(3, ge=1, description="Episodes needed before chunking runs")
    confidence_threshold: float = Field(
        0.6, ge=0.0, le=1.0, description="Minimum confidence to create a new pattern"
    )
    # Kept for configuration parity; grouping uses exact page/context matching.
    similarity_threshold: float = Field(0.7, ge=0.0, le=1.0)


class EpisodeQuery(BaseModel):
    """Composable episode filter.

    Every set field is ANDed together. Backends apply ordering (newest first)
    and `limit` after filtering.
    """

    agent_id: str
    page_id: Optional[str] = None
    event_type: Optional[str] = None
    outcome: Optional[Outcome] = None
    # Inclusive lower bound on surprise_score
    min_surprise: Optional[float] = Field(None, ge=0.0, le=1.0)
    limit: int = Field(50, ge=0)

    def matches(self, episode: EpisodicMemory) -> bool:
        if episode.agent_id != self.agent_id:
            return False
        if self.page_id is not None and episode.page_id != self.page_id:
            return False
        if self.event_type is not None and episode.event_type != self.event_type:
            return False
        if self.outcome is not None and episode.outcome != self.outcome:
            return False
        if self.min_surprise is not None and episode.surprise_score < self.min_surprise:
            return False
        return True
