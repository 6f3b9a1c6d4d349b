"""
Session Demo: Beliefs + Agent Memory
====================================

WHAT THIS SHOWS:
- A belief engine adapting response parameters as evidence arrives
- An agent recording page audits until a semantic pattern is chunked
- A rule being simulated first, then learned from real outcomes
- NO database (in-memory persistence)

RUN:
    python -m examples.session_demo.run
"""

import asyncio

from credence import (
    AgentMemoryStore,
    BeliefEngine,
    Evidence,
    InMemoryPersistence,
)


# ============================================================================
# STEP 1: Beliefs about the user
# ============================================================================

def run_beliefs() -> None:
    engine = BeliefEngine()

    # The user writes TypeScript with semicolons...
    sample = Evidence(
        type="code_written",
        content={"language": "typescript", "hasSemicolons": True},
        confidence=0.9,
    )
    engine.update_belief("prefers_typescript", sample)
    engine.update_belief("uses_semicolons", sample)

    # ...and keeps asking why.
    engine.update_belief(
        "wants_detailed_explanations",
        Evidence(type="question_asked", content={"question": "Why does this work?"}),
    )

    print(engine.get_preferences().model_dump_json(indent=2))
    print(engine.get_response_parameters())


# ============================================================================
# STEP 2: Episodes -> semantic pattern -> procedural rule
# ============================================================================

async def run_memory() -> None:
    persistence = InMemoryPersistence()
    await persistence.initialize()
    store = AgentMemoryStore(persistence)

    # Six clean audits of the same page clear the 0.6 chunking threshold.
    for run in range(6):
        await store.record_episode(
            "page-auditor",
            "/events",
            "audit",
            {"component": "EventFilters", "run": run},
            "success",
            surprise_score=0.2,
        )

    for memory in await store.query_semantic_memory("page-auditor"):
        print(f"{memory.concept}: {memory.confidence:.2f} {memory.pattern['common_context']}")

    rule = await store.create_procedural_rule(
        "page-auditor",
        "retry-flaky-filters",
        condition={"component": True, "flaky": True},
        action={"retry": 2},
        description="Retry audits of flaky filter components",
    )

    # Test before applying: nothing learned yet, only the simulation is counted.
    print(await store.mental_simulation(rule.id, {"component": "EventFilters", "flaky": True}))

    for outcome in ("success", "success", "failure"):
        rule = await store.update_rule_performance(rule.id, outcome)
    print(f"{rule.rule_name}: success rate {rule.success_rate:.3f}")

    await persistence.close()


if __name__ == "__main__":
    run_beliefs()
    asyncio.run(run_memory())
