"""
AgentMemoryStore: three-tier memory for autonomous agents.

Based on the SOAR cognitive architecture's memory split:
- Episodic: timestamped experiences with a surprise signal
- Semantic: patterns generalized ("chunked") from repeated successful episodes
- Procedural: condition -> action rules whose success rate is learned online

Key responsibilities:
- Record episodes and chunk them into semantic patterns inline
- Recall episodes with usage tracking (recall is not read-only)
- Author rules, test them by mental simulation, and learn from real outcomes

Design principle: simulation and execution stay separate. mental_simulation()
only counts tests; update_rule_performance() is the single writer of
success_rate.

Storage is delegated to a PersistenceStrategy; backend exceptions propagate.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from .chunking import extract_common_patterns
from .config import Config
from .logging_utils import log_deterministic, log_success, log_warning
from .persistence import PersistenceStrategy
from .schemas import (
    ChunkingConfig,
    EpisodeQuery,
    EpisodicMemory,
    MentalSimulationResult,
    Outcome,
    ProceduralMemory,
    RuleOutcome,
    SemanticMemory,
    utc_now,
)

DEFAULT_SURPRISE = 0.5
HIGH_SURPRISE = 0.7
SEMANTIC_REINFORCEMENT = 0.1
MAX_SEMANTIC_CONFIDENCE = 0.95

_VALENCE: Dict[str, float] = {"success": 1.0, "failure": -1.0, "partial": 0.0}


def evaluate_condition(condition: Optional[Dict[str, Any]], state: Optional[Dict[str, Any]]) -> bool:
    """True if every key of `condition` is present in `state`.

    Key presence only - values are not compared. An empty condition matches any
    state; a missing condition or state never matches.
    """
    if condition is None or state is None:
        return False
    return all(key in state for key in condition)


def ema_update(rate: float, learning_rate: float, outcome: RuleOutcome) -> float:
    """rate + learning_rate * (reward - rate), reward 1.0 on success else 0.0."""
    reward = 1.0 if outcome == "success" else 0.0
    return rate + learning_rate * (reward - rate)


def memory_strength(
    episode: EpisodicMemory,
    now: Optional[datetime] = None,
    half_life_hours: float = Config.MEMORY_HALF_LIFE_HOURS,
) -> float:
    """Salience decayed by time since the episode was last touched.

    Each past recall stretches the half-life, so frequently recalled memories
    fade more slowly:

        salience * 0.5 ** (age_hours / (half_life_hours * (1 + retrieval_count)))
    """
    now = now or utc_now()
    touched = episode.last_retrieved_at or episode.timestamp
    age_hours = max((now - touched).total_seconds() / 3600.0, 0.0)
    effective_half_life = half_life_hours * (1 + episode.retrieval_count)
    return episode.salience * math.pow(0.5, age_hours / effective_half_life)


class AgentMemoryStore:
    """Episodic, semantic and procedural memory backed by a persistence strategy."""

    def __init__(
        self,
        persistence: PersistenceStrategy,
        *,
        chunking: Optional[ChunkingConfig] = None,
        default_learning_rate: Optional[float] = None,
    ) -> None:
        """
        Args:
            persistence: Initialized PersistenceStrategy instance
            chunking: Chunking thresholds (defaults come from Config)
            default_learning_rate: EMA step size for newly created rules
        """
        self.persistence = persistence
        self.chunking = chunking or ChunkingConfig(
            min_episodes=Config.CHUNK_MIN_EPISODES,
            confidence_threshold=Config.CHUNK_CONFIDENCE_THRESHOLD,
            similarity_threshold=Config.CHUNK_SIMILARITY_THRESHOLD,
        )
        self.default_learning_rate = (
            default_learning_rate if default_learning_rate is not None else Config.RULE_LEARNING_RATE
        )

    # ========================================================================
    # Episodic memory
    # ========================================================================

    async def record_episode(
        self,
        agent_id: str,
        page_id: str,
        event_type: str,
        context: Dict[str, Any],
        outcome: Outcome,
        surprise_score: Optional[float] = None,
    ) -> EpisodicMemory:
        """
        Record an experience, then try to chunk it into a semantic pattern.

        Args:
            agent_id: Agent who had the experience
            page_id: Page/context it happened on
            event_type: Kind of event
            context: Situation payload
            outcome: success, failure or partial
            surprise_score: 0..1, defaults to 0.5

        Returns:
            The stored episode

        Raises:
            pydantic.ValidationError: On an unknown outcome or out-of-range surprise
        """
        surprise = DEFAULT_SURPRISE if surprise_score is None else surprise_score

        episode = EpisodicMemory(
            agent_id=agent_id,
            page_id=page_id,
            event_type=event_type,
            context=dict(context or {}),
            outcome=outcome,
            surprise_score=surprise,
            emotional_valence=_VALENCE.get(outcome, 0.0),
            salience=1.0 if surprise > HIGH_SURPRISE else 0.5,
        )

        await self.persistence.save_episode(episode)
        await self._attempt_chunking(agent_id, event_type)
        return episode

    async def recall_episodes(
        self,
        agent_id: str,
        *,
        page_id: Optional[str] = None,
        event_type: Optional[str] = None,
        min_surprise: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[EpisodicMemory]:
        """
        Recall an agent's episodes, most recent first.

        Every returned episode has its retrieval_count bumped and
        last_retrieved_at stamped (one batch write); the returned objects
        already reflect that update.
        """
        query = EpisodeQuery(
            agent_id=agent_id,
            page_id=page_id,
            event_type=event_type,
            min_surprise=min_surprise,
            limit=limit if limit is not None else Config.RECALL_LIMIT,
        )
        episodes = await self.persistence.query_episodes(query)
        await self._mark_retrieved(episodes)
        return episodes

    async def recall_salient_episodes(
        self,
        agent_id: str,
        *,
        limit: int = 10,
        window: Optional[int] = None,
        half_life_hours: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> List[EpisodicMemory]:
        """
        Recall the episodes that are still strongest after decay.

        Scans the most recent `window` episodes, ranks them by memory_strength
        and marks only the returned ones as retrieved.
        """
        now = now or utc_now()
        half_life = half_life_hours if half_life_hours is not None else Config.MEMORY_HALF_LIFE_HOURS
        candidates = await self.persistence.query_episodes(
            EpisodeQuery(agent_id=agent_id, limit=window or Config.RECALL_LIMIT)
        )

        ranked = sorted(
            candidates,
            key=lambda e: memory_strength(e, now, half_life),
            reverse=True,
        )[:limit]
        await self._mark_retrieved(ranked, now)
        return ranked

    async def _mark_retrieved(
        self, episodes: List[EpisodicMemory], at: Optional[datetime] = None
    ) -> None:
        if not episodes:
            return

        retrieved_at = at or utc_now()
        await self.persistence.mark_episodes_retrieved([e.id for e in episodes], retrieved_at)
        for episode in episodes:
            episode.retrieval_count += 1
            episode.last_retrieved_at = retrieved_at

    # ========================================================================
    # Semantic memory
    # ========================================================================

    async def _attempt_chunking(self, agent_id: str, event_type: str) -> None:
        config = self.chunking
        recent = await self.persistence.query_episodes(
            EpisodeQuery(
                agent_id=agent_id,
                event_type=event_type,
                outcome="success",
                limit=config.min_episodes * 2,
            )
        )
        if len(recent) < config.min_episodes:
            return

        for candidate in extract_common_patterns(recent):
            existing = await self.persistence.get_semantic_memory(agent_id, candidate.concept)

            if existing is not None:
                known = set(existing.episode_ids)
                new_ids = [eid for eid in candidate.episode_ids if eid not in known]
                if not new_ids:
                    continue

                previous = existing.confidence
                existing.confidence = min(previous + SEMANTIC_REINFORCEMENT, MAX_SEMANTIC_CONFIDENCE)
                existing.learned_from_count += len(new_ids)
                existing.episode_ids.extend(new_ids)
                existing.updated_at = utc_now()
                await self.persistence.save_semantic_memory(existing)
                log_deterministic(
                    f"[Chunking] Reinforced {candidate.concept} for {agent_id}: "
                    f"{previous:.2f} → {existing.confidence:.2f}"
                )
            elif candidate.confidence >= config.confidence_threshold:
                memory = SemanticMemory(
                    agent_id=agent_id,
                    concept=candidate.concept,
                    pattern=candidate.pattern,
                    confidence=candidate.confidence,
                    learned_from_count=len(candidate.episode_ids),
                    episode_ids=candidate.episode_ids,
                )
                await self.persistence.save_semantic_memory(memory)
                log_success(
                    f"[Chunking] Learned {candidate.concept} for {agent_id} "
                    f"from {memory.learned_from_count} episodes ({memory.confidence:.2f})"
                )

    async def query_semantic_memory(
        self,
        agent_id: str,
        concept: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> List[SemanticMemory]:
        """Semantic memories for an agent, most confident first."""
        return await self.persistence.query_semantic_memories(agent_id, concept, min_confidence)

    # ========================================================================
    # Procedural memory
    # ========================================================================

    async def create_procedural_rule(
        self,
        agent_id: str,
        rule_name: str,
        condition: Dict[str, Any],
        action: Dict[str, Any],
        description: Optional[str] = None,
        *,
        priority: Optional[int] = None,
        learning_rate: Optional[float] = None,
    ) -> ProceduralMemory:
        """
        Create a rule, or update the existing rule with the same name.

        Updating overwrites condition/action/description (and priority or
        learning rate when given) but keeps the learned statistics.
        """
        existing = await self.persistence.get_rule_by_name(rule_name)

        if existing is not None:
            existing.condition = dict(condition)
            existing.action = dict(action)
            existing.description = description
            if priority is not None:
                existing.priority = priority
            if learning_rate is not None:
                existing.learning_rate = learning_rate
            existing.updated_at = utc_now()
            # Re-validate so a bad learning rate fails before it is persisted.
            rule = ProceduralMemory.model_validate(existing.model_dump())
            await self.persistence.save_rule(rule)
            return rule

        rule = ProceduralMemory(
            agent_id=agent_id,
            rule_name=rule_name,
            condition=dict(condition),
            action=dict(action),
            description=description,
            priority=priority if priority is not None else 0,
            learning_rate=learning_rate if learning_rate is not None else self.default_learning_rate,
        )
        await self.persistence.save_rule(rule)
        return rule

    async def mental_simulation(
        self, rule_id: UUID, current_state: Dict[str, Any]
    ) -> MentalSimulationResult:
        """
        Test a rule against a hypothetical state without applying it.

        Always counts the simulation; never touches success_rate.
        """
        rule = await self.persistence.get_rule(rule_id)
        if rule is None:
            return MentalSimulationResult(
                success=False,
                confidence=0.0,
                reasoning="Rule not found",
                simulated_outcome=None,
            )

        matches = evaluate_condition(rule.condition, current_state)

        rule.mental_simulation_count += 1
        rule.updated_at = utc_now()
        await self.persistence.save_rule(rule)

        return MentalSimulationResult(
            success=matches,
            confidence=rule.success_rate,
            reasoning=(
                f"Condition matches, expected success rate: {rule.success_rate:.2f}"
                if matches
                else "Condition does not match current state"
            ),
            simulated_outcome=rule.action if matches else None,
        )

    async def update_rule_performance(
        self, rule_id: UUID, outcome: RuleOutcome
    ) -> Optional[ProceduralMemory]:
        """
        Feed a real application outcome back into the rule's success rate.

        Returns:
            The updated rule, or None if it does not exist
        """
        rule = await self.persistence.get_rule(rule_id)
        if rule is None:
            log_warning(f"[Procedural] Cannot record {outcome} for unknown rule {rule_id}")
            return None

        previous = rule.success_rate
        rule.success_rate = ema_update(previous, rule.learning_rate, outcome)
        rule.application_count += 1
        rule.last_application_outcome = outcome
        rule.updated_at = utc_now()
        await self.persistence.save_rule(rule)

        log_deterministic(
            f"[Procedural] {rule.rule_name} {outcome}: success rate "
            f"{previous:.3f} → {rule.success_rate:.3f}"
        )
        return rule

    async def get_best_rules(
        self, agent_id: str, current_state: Dict[str, Any], limit: int = 5
    ) -> List[ProceduralMemory]:
        """
        Enabled rules whose condition matches the state.

        The full rule set is ranked (priority desc, success_rate desc) before
        filtering, so matching rules keep their relative ranking.
        """
        ranked = await self.persistence.list_rules(agent_id, enabled_only=True)
        matching = [rule for rule in ranked if evaluate_condition(rule.condition, current_state)]
        return matching[:limit]

