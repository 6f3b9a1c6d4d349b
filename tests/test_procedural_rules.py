"""Tests for procedural rules: authoring, mental simulation and EMA learning."""

from uuid import uuid4

import pytest

from credence.memory import AgentMemoryStore, ema_update, evaluate_condition
from credence.persistence import InMemoryPersistence


@pytest.fixture
def store() -> AgentMemoryStore:
    return AgentMemoryStore(InMemoryPersistence())


@pytest.mark.asyncio
async def test_create_rule_uses_defaults(store):
    rule = await store.create_procedural_rule(
        "planner", "r1", {"foo": True}, {"do_thing": 1}, "Do the thing"
    )

    assert rule.success_rate == 0.5
    assert rule.learning_rate == pytest.approx(0.1)
    assert rule.application_count == 0
    assert rule.mental_simulation_count == 0
    assert rule.priority == 0
    assert rule.enabled is True
    assert (await store.persistence.get_rule(rule.id)).rule_name == "r1"


@pytest.mark.asyncio
async def test_simulation_matches_without_touching_success_rate(store):
    rule = await store.create_procedural_rule("planner", "r1", {"foo": True}, {"do_thing": 1})

    result = await store.mental_simulation(rule.id, {"foo": True, "bar": 2})

    assert result.success is True
    assert result.simulated_outcome == {"do_thing": 1}
    assert result.confidence == 0.5
    assert "Condition matches" in result.reasoning

    stored = await store.persistence.get_rule(rule.id)
    assert stored.mental_simulation_count == 1
    assert stored.success_rate == 0.5
    assert stored.application_count == 0


@pytest.mark.asyncio
async def test_simulation_counts_misses_too(store):
    rule = await store.create_procedural_rule("planner", "r1", {"foo": True}, {"do_thing": 1})

    await store.mental_simulation(rule.id, {"foo": 1})
    result = await store.mental_simulation(rule.id, {"bar": 2})

    assert result.success is False
    assert result.simulated_outcome is None
    assert result.reasoning == "Condition does not match current state"
    assert (await store.persistence.get_rule(rule.id)).mental_simulation_count == 2


@pytest.mark.asyncio
async def test_simulation_of_missing_rule_returns_not_found(store):
    result = await store.mental_simulation(uuid4(), {"foo": True})

    assert result.success is False
    assert result.confidence == 0.0
    assert result.reasoning == "Rule not found"
    assert result.simulated_outcome is None


@pytest.mark.asyncio
async def test_rule_performance_moves_by_learning_rate(store):
    rule = await store.create_procedural_rule("planner", "r1", {"foo": True}, {"do_thing": 1})

    after_success = await store.update_rule_performance(rule.id, "success")
    assert after_success.success_rate == pytest.approx(0.5 + 0.1 * (1 - 0.5))
    assert after_success.application_count == 1
    assert after_success.last_application_outcome == "success"

    after_failure = await store.update_rule_performance(rule.id, "failure")
    assert after_failure.success_rate == pytest.approx(0.55 - 0.1 * 0.55)
    assert after_failure.application_count == 2
    assert after_failure.last_application_outcome == "failure"


@pytest.mark.asyncio
async def test_end_to_end_simulate_then_learn(store):
    rule = await store.create_procedural_rule("planner", "r1", {"foo": True}, {"do_thing": 1})

    simulated = await store.mental_simulation(rule.id, {"foo": True, "bar": 2})
    assert simulated.success is True

    for _ in range(5):
        await store.update_rule_performance(rule.id, "success")

    stored = await store.persistence.get_rule(rule.id)
    # Iterating r <- r + a(1 - r) n times from r0 gives 1 - (1 - r0)(1 - a)^n
    assert stored.success_rate == pytest.approx(1 - 0.5 * 0.9 ** 5)
    assert stored.application_count == 5
    assert stored.mental_simulation_count == 1


@pytest.mark.asyncio
async def test_update_missing_rule_returns_none(store):
    assert await store.update_rule_performance(uuid4(), "success") is None


@pytest.mark.asyncio
async def test_rule_upsert_preserves_learned_history(store):
    original = await store.create_procedural_rule("planner", "r1", {"foo": True}, {"do_thing": 1})
    await store.update_rule_performance(original.id, "success")
    await store.mental_simulation(original.id, {"foo": True})

    updated = await store.create_procedural_rule(
        "planner", "r1", {"baz": True}, {"do_other": 2}, "Rewritten", priority=3
    )

    assert updated.id == original.id
    assert updated.condition == {"baz": True}
    assert updated.action == {"do_other": 2}
    assert updated.description == "Rewritten"
    assert updated.priority == 3
    assert updated.success_rate == pytest.approx(0.55)
    assert updated.application_count == 1
    assert updated.mental_simulation_count == 1
    assert len(store.persistence.rules) == 1


@pytest.mark.asyncio
async def test_per_rule_learning_rate(store):
    rule = await store.create_procedural_rule(
        "planner", "fast", {"foo": True}, {}, learning_rate=0.5
    )

    updated = await store.update_rule_performance(rule.id, "failure")

    assert updated.success_rate == pytest.approx(0.25)


@pytest.mark.asyncio
async def test_best_rules_ranked_then_filtered(store):
    low = await store.create_procedural_rule("planner", "low", {"foo": True}, {}, priority=1)
    high = await store.create_procedural_rule("planner", "high", {"foo": True}, {}, priority=5)
    skilled = await store.create_procedural_rule("planner", "skilled", {"foo": True}, {}, priority=1)
    await store.create_procedural_rule("planner", "unmatched", {"missing": True}, {}, priority=9)
    await store.create_procedural_rule("someone-else", "foreign", {"foo": True}, {}, priority=9)
    disabled = await store.create_procedural_rule("planner", "disabled", {"foo": True}, {}, priority=9)

    await store.update_rule_performance(skilled.id, "success")
    disabled.enabled = False
    await store.persistence.save_rule(disabled)

    best = await store.get_best_rules("planner", {"foo": True})
    assert [r.rule_name for r in best] == ["high", "skilled", "low"]

    top = await store.get_best_rules("planner", {"foo": True}, limit=2)
    assert [r.id for r in top] == [high.id, skilled.id]
    assert low.id not in [r.id for r in top]


def test_evaluate_condition_is_key_presence_only():
    assert evaluate_condition({"foo": True}, {"foo": False}) is True
    assert evaluate_condition({"foo": True, "bar": 1}, {"foo": True}) is False
    assert evaluate_condition({}, {"anything": 1}) is True
    assert evaluate_condition({}, {}) is True
    assert evaluate_condition(None, {"foo": True}) is False
    assert evaluate_condition({"foo": True}, None) is False


def test_ema_update():
    assert ema_update(0.5, 0.1, "success") == pytest.approx(0.55)
    assert ema_update(0.5, 0.1, "failure") == pytest.approx(0.45)
    assert ema_update(1.0, 0.3, "success") == pytest.approx(1.0)
