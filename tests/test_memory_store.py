"""Tests for episodic recall and chunking in AgentMemoryStore."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from credence.memory import AgentMemoryStore, memory_strength
from credence.persistence import InMemoryPersistence
from credence.schemas import ChunkingConfig, EpisodicMemory, utc_now


async def make_store(**kwargs) -> AgentMemoryStore:
    persistence = InMemoryPersistence()
    await persistence.initialize()
    return AgentMemoryStore(persistence, **kwargs)


async def record_successes(store, count, *, agent_id="auditor", page_id="/profile", event_type="audit"):
    episodes = []
    for i in range(count):
        episodes.append(
            await store.record_episode(
                agent_id,
                page_id,
                event_type,
                {"component": "Header", "attempt": i},
                "success",
            )
        )
    return episodes


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "outcome, valence",
    [("success", 1.0), ("failure", -1.0), ("partial", 0.0)],
)
async def test_record_episode_sets_valence(outcome, valence):
    store = await make_store()

    episode = await store.record_episode("auditor", "/events", "audit", {}, outcome)

    assert episode.emotional_valence == valence
    assert episode.outcome == outcome


@pytest.mark.asyncio
async def test_record_episode_salience_follows_surprise():
    store = await make_store()

    surprising = await store.record_episode("auditor", "/events", "audit", {}, "success", 0.8)
    ordinary = await store.record_episode("auditor", "/events", "audit", {}, "success", 0.5)
    borderline = await store.record_episode("auditor", "/events", "audit", {}, "success", 0.7)
    default = await store.record_episode("auditor", "/events", "audit", {}, "success")

    assert surprising.salience == 1.0
    assert ordinary.salience == 0.5
    assert borderline.salience == 0.5
    assert default.surprise_score == 0.5
    assert default.salience == 0.5
    assert default.retrieval_count == 0
    assert default.last_retrieved_at is None


@pytest.mark.asyncio
async def test_record_episode_rejects_invalid_input():
    store = await make_store()

    with pytest.raises(ValidationError):
        await store.record_episode("auditor", "/events", "audit", {}, "exploded")
    with pytest.raises(ValidationError):
        await store.record_episode("auditor", "/events", "audit", {}, "success", 1.5)

    assert store.persistence.episodes == []


@pytest.mark.asyncio
async def test_recall_returns_most_recent_first():
    store = await make_store()
    first = await store.record_episode("auditor", "/a", "audit", {"n": 1}, "failure")
    second = await store.record_episode("auditor", "/a", "audit", {"n": 2}, "failure")
    third = await store.record_episode("auditor", "/a", "audit", {"n": 3}, "failure")

    recalled = await store.recall_episodes("auditor")

    assert [e.id for e in recalled] == [third.id, second.id, first.id]


@pytest.mark.asyncio
async def test_recall_filters_and_together():
    store = await make_store()
    await store.record_episode("auditor", "/a", "audit", {}, "failure", 0.2)
    wanted = await store.record_episode("auditor", "/a", "fix", {}, "failure", 0.9)
    await store.record_episode("auditor", "/b", "fix", {}, "failure", 0.9)
    await store.record_episode("other-agent", "/a", "fix", {}, "failure", 0.9)

    recalled = await store.recall_episodes("auditor", page_id="/a", event_type="fix", min_surprise=0.5)

    assert [e.id for e in recalled] == [wanted.id]


@pytest.mark.asyncio
async def test_min_surprise_is_inclusive_and_zero_is_a_real_bound():
    store = await make_store()
    await store.record_episode("auditor", "/a", "audit", {}, "failure", 0.0)
    await store.record_episode("auditor", "/a", "audit", {}, "failure", 0.5)

    assert len(await store.recall_episodes("auditor", min_surprise=0.5)) == 1
    assert len(await store.recall_episodes("auditor", min_surprise=0.0)) == 2


@pytest.mark.asyncio
async def test_recall_tracks_retrievals_each_time():
    store = await make_store()
    await store.record_episode("auditor", "/a", "audit", {}, "partial")
    await store.record_episode("auditor", "/a", "audit", {}, "partial")

    first = await store.recall_episodes("auditor", page_id="/a")
    second = await store.recall_episodes("auditor", page_id="/a")

    assert [e.retrieval_count for e in first] == [1, 1]
    assert [e.retrieval_count for e in second] == [2, 2]
    assert all(e.last_retrieved_at is not None for e in second)
    assert [e.retrieval_count for e in store.persistence.episodes] == [2, 2]


@pytest.mark.asyncio
async def test_recall_only_touches_returned_episodes():
    store = await make_store()
    older = await store.record_episode("auditor", "/a", "audit", {}, "partial")
    newer = await store.record_episode("auditor", "/a", "audit", {}, "partial")

    recalled = await store.recall_episodes("auditor", limit=1)

    assert [e.id for e in recalled] == [newer.id]
    counts = {e.id: e.retrieval_count for e in store.persistence.episodes}
    assert counts == {older.id: 0, newer.id: 1}


@pytest.mark.asyncio
async def test_recall_with_zero_limit_returns_nothing():
    store = await make_store()
    await store.record_episode("auditor", "/a", "audit", {}, "partial")

    assert await store.recall_episodes("auditor", limit=0) == []
    assert [e.retrieval_count for e in store.persistence.episodes] == [0]


@pytest.mark.asyncio
async def test_chunking_needs_enough_confidence_to_create_pattern():
    store = await make_store()

    await record_successes(store, 5)
    # min(5 / 10, 0.9) = 0.5 is below the 0.6 threshold
    assert await store.query_semantic_memory("auditor") == []

    episodes = await record_successes(store, 1)
    memories = await store.query_semantic_memory("auditor")

    assert len(memories) == 1
    memory = memories[0]
    assert memory.concept == "audit_pattern_/profile"
    assert memory.confidence == pytest.approx(0.6)
    assert memory.learned_from_count == 6
    assert episodes[0].id in memory.episode_ids
    assert memory.pattern["page_id"] == "/profile"
    assert memory.pattern["event_type"] == "audit"
    # attempt differs per episode so only the shared value survives
    assert memory.pattern["common_context"] == {"component": "Header"}


@pytest.mark.asyncio
async def test_chunking_with_lower_threshold_uses_group_size_confidence():
    store = await make_store(chunking=ChunkingConfig(min_episodes=3, confidence_threshold=0.3))

    await record_successes(store, 2)
    assert await store.query_semantic_memory("auditor") == []

    await record_successes(store, 1)
    memories = await store.query_semantic_memory("auditor")
    assert len(memories) == 1
    assert memories[0].confidence == pytest.approx(0.3)
    assert memories[0].learned_from_count == 3


@pytest.mark.asyncio
async def test_chunking_ignores_unsuccessful_episodes():
    store = await make_store(chunking=ChunkingConfig(min_episodes=3, confidence_threshold=0.3))

    for outcome in ("failure", "partial", "failure", "partial"):
        await store.record_episode("auditor", "/profile", "audit", {}, outcome)

    assert await store.query_semantic_memory("auditor") == []


@pytest.mark.asyncio
async def test_chunking_reinforces_existing_pattern():
    store = await make_store()
    await record_successes(store, 6)

    await record_successes(store, 1)
    memory = (await store.query_semantic_memory("auditor"))[0]
    assert memory.confidence == pytest.approx(0.7)
    assert memory.learned_from_count == 7
    assert len(memory.episode_ids) == 7

    # A failure brings no new successful episode into the group.
    await store.record_episode("auditor", "/profile", "audit", {}, "failure")
    unchanged = (await store.query_semantic_memory("auditor"))[0]
    assert unchanged.confidence == pytest.approx(0.7)

    await record_successes(store, 5)
    capped = (await store.query_semantic_memory("auditor"))[0]
    assert capped.confidence == pytest.approx(0.95)


@pytest.mark.asyncio
async def test_chunking_groups_by_page():
    store = await make_store(chunking=ChunkingConfig(min_episodes=3, confidence_threshold=0.3))

    await record_successes(store, 3, page_id="/events")
    await record_successes(store, 3, page_id="/housing")

    concepts = {m.concept for m in await store.query_semantic_memory("auditor")}
    assert concepts == {"audit_pattern_/events", "audit_pattern_/housing"}


@pytest.mark.asyncio
async def test_query_semantic_memory_filters():
    store = await make_store(chunking=ChunkingConfig(min_episodes=3, confidence_threshold=0.3))
    await record_successes(store, 3, page_id="/events")
    await record_successes(store, 4, page_id="/housing", event_type="fix")

    by_concept = await store.query_semantic_memory("auditor", concept="audit_pattern_/events")
    assert [m.concept for m in by_concept] == ["audit_pattern_/events"]

    confident = await store.query_semantic_memory("auditor", min_confidence=0.35)
    assert [m.concept for m in confident] == ["fix_pattern_/housing"]

    assert await store.query_semantic_memory("someone-else") == []


def test_memory_strength_decays_and_recall_slows_forgetting():
    now = utc_now()
    episode = EpisodicMemory(
        agent_id="auditor",
        page_id="/a",
        event_type="audit",
        outcome="success",
        salience=1.0,
        timestamp=now - timedelta(hours=168),
    )

    assert memory_strength(episode, now, half_life_hours=168) == pytest.approx(0.5)

    episode.retrieval_count = 1
    assert memory_strength(episode, now, half_life_hours=168) == pytest.approx(0.5 ** 0.5)

    episode.last_retrieved_at = now
    assert memory_strength(episode, now, half_life_hours=168) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_recall_salient_episodes_prefers_memorable():
    store = await make_store()
    memorable = await store.record_episode("auditor", "/a", "audit", {}, "failure", 0.9)
    await store.record_episode("auditor", "/a", "audit", {}, "failure", 0.1)
    await store.record_episode("auditor", "/a", "audit", {}, "failure", 0.2)

    recalled = await store.recall_salient_episodes("auditor", limit=1)

    assert [e.id for e in recalled] == [memorable.id]
    counts = sorted(e.retrieval_count for e in store.persistence.episodes)
    assert counts == [0, 0, 1]
