"""
PersistenceStrategy interface for pluggable memory storage backends.

This module provides the abstract PersistenceStrategy interface and three concrete
implementations for storing the three agent memory tiers. The memory store only
ever talks to this interface - swap backends without touching memory logic.

Three included implementations:
1. InMemoryPersistence - Dict-based storage, data lost on exit (testing, prototyping)
2. JsonPersistence - File-based storage, one human-readable JSON file per record
3. PostgresPersistence - Database storage via asyncpg, scalable and queryable

Key responsibilities:
- Insert and filter episodic memories (newest first, limit applied last)
- Batch-bump retrieval tracking for recalled episodes
- Upsert and query semantic memories by (agent_id, concept)
- Upsert, look up and list procedural rules

Failures are not handled here: backend exceptions propagate to the caller,
which owns any retry/backoff policy.

Usage pattern:
    persistence = InMemoryPersistence()  # or JsonPersistence(), PostgresPersistence()
    await persistence.initialize()
    store = AgentMemoryStore(persistence)
    ...
    await persistence.close()
"""

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel

from .config import Config
from .logging_utils import log_error, log_info
from .schemas import (
    EpisodeQuery,
    EpisodicMemory,
    ProceduralMemory,
    SemanticMemory,
)

try:  # Optional dependency (only needed for PostgresPersistence)
    import asyncpg
except ImportError:  # pragma: no cover - asyncpg may not be installed for json/memory usage
    asyncpg = None


ModelT = TypeVar("ModelT", bound=BaseModel)


def _newest_first(episodes: Sequence[EpisodicMemory]) -> List[EpisodicMemory]:
    # Reverse insertion order first so equal timestamps keep newest-inserted on top
    # (sorted() is stable).
    return sorted(reversed(list(episodes)), key=lambda e: e.timestamp, reverse=True)


def _rank_rules(rules: Sequence[ProceduralMemory]) -> List[ProceduralMemory]:
    return sorted(rules, key=lambda r: (r.priority, r.success_rate), reverse=True)


class PersistenceStrategy(ABC):
    """Abstract base class for agent memory persistence.

    Async interface rationale:
    - All methods are async to support I/O-bound operations (database, files)
    - initialize() and close() manage connection pools, directories, etc.
    - Async is no-op for InMemoryPersistence but critical for database backends

    Method categories:
    1. Lifecycle: initialize(), close()
    2. Episodic: save_episode(), query_episodes(), mark_episodes_retrieved()
    3. Semantic: get_semantic_memory(), save_semantic_memory(), query_semantic_memories()
    4. Procedural: get_rule(), get_rule_by_name(), save_rule(), list_rules()
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the persistence backend.

        Raises:
            Exception: If initialization fails
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the persistence backend and release resources."""
        pass

    @abstractmethod
    async def save_episode(self, episode: EpisodicMemory) -> None:
        """
        Insert a new episodic memory.

        Args:
            episode: Episode to store
        """
        pass

    @abstractmethod
    async def query_episodes(self, query: EpisodeQuery) -> List[EpisodicMemory]:
        """
        Retrieve episodes matching every filter in the query.

        Args:
            query: Composable filter (agent, page, event type, outcome, min surprise)

        Returns:
            Matching episodes, most recent first, truncated to query.limit
        """
        pass

    @abstractmethod
    async def mark_episodes_retrieved(
        self, episode_ids: Sequence[UUID], retrieved_at: datetime
    ) -> None:
        """
        Increment retrieval_count and stamp last_retrieved_at for a batch of episodes.

        Args:
            episode_ids: Episodes that were recalled
            retrieved_at: Recall timestamp
        """
        pass

    @abstractmethod
    async def get_semantic_memory(self, agent_id: str, concept: str) -> Optional[SemanticMemory]:
        """Return the agent's semantic memory for a concept, if any."""
        pass

    @abstractmethod
    async def save_semantic_memory(self, memory: SemanticMemory) -> None:
        """Insert or replace a semantic memory (keyed by id)."""
        pass

    @abstractmethod
    async def query_semantic_memories(
        self,
        agent_id: str,
        concept: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> List[SemanticMemory]:
        """
        Retrieve semantic memories for an agent.

        Returns:
            Matching memories ordered by confidence (highest first)
        """
        pass

    @abstractmethod
    async def get_rule(self, rule_id: UUID) -> Optional[ProceduralMemory]:
        pass

    @abstractmethod
    async def get_rule_by_name(self, rule_name: str) -> Optional[ProceduralMemory]:
        pass

    @abstractmethod
    async def save_rule(self, rule: ProceduralMemory) -> None:
        """Insert or replace a procedural rule (keyed by id)."""
        pass

    @abstractmethod
    async def list_rules(self, agent_id: str, enabled_only: bool = True) -> List[ProceduralMemory]:
        """
        List an agent's rules.

        Returns:
            Rules ordered by priority desc, then success_rate desc
        """
        pass


class InMemoryPersistence(PersistenceStrategy):
    """In-memory persistence using Python dicts (no database, no files).

    Storage structure:
    - episodes: List[EpisodicMemory] - insertion ordered
    - semantic: Dict[UUID, SemanticMemory]
    - rules: Dict[UUID, ProceduralMemory]

    Stored objects are copied on the way in and out so callers cannot mutate
    backend state by accident - the same isolation a real database gives.

    Perfect for unit tests and short-lived agents. Data is lost on exit.
    """

    def __init__(self):
        """Initialize in-memory storage."""
        self.episodes: List[EpisodicMemory] = []
        self.semantic: Dict[UUID, SemanticMemory] = {}
        self.rules: Dict[UUID, ProceduralMemory] = {}

    async def initialize(self) -> None:
        """No-op for in-memory implementation."""
        pass

    async def close(self) -> None:
        """
        No-op: data is NOT cleared on close so callers can inspect state afterwards.
        """
        pass

    async def save_episode(self, episode: EpisodicMemory) -> None:
        self.episodes.append(episode.model_copy(deep=True))

    async def query_episodes(self, query: EpisodeQuery) -> List[EpisodicMemory]:
        matching = [e for e in self.episodes if query.matches(e)]
        return [e.model_copy(deep=True) for e in _newest_first(matching)[: query.limit]]

    async def mark_episodes_retrieved(
        self, episode_ids: Sequence[UUID], retrieved_at: datetime
    ) -> None:
        wanted = set(episode_ids)
        for episode in self.episodes:
            if episode.id in wanted:
                episode.retrieval_count += 1
                episode.last_retrieved_at = retrieved_at

    async def get_semantic_memory(self, agent_id: str, concept: str) -> Optional[SemanticMemory]:
        for memory in self.semantic.values():
            if memory.agent_id == agent_id and memory.concept == concept:
                return memory.model_copy(deep=True)
        return None

    async def save_semantic_memory(self, memory: SemanticMemory) -> None:
        self.semantic[memory.id] = memory.model_copy(deep=True)

    async def query_semantic_memories(
        self,
        agent_id: str,
        concept: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> List[SemanticMemory]:
        results = [
            m.model_copy(deep=True)
            for m in self.semantic.values()
            if m.agent_id == agent_id
            and (concept is None or m.concept == concept)
            and (min_confidence is None or m.confidence >= min_confidence)
        ]
        results.sort(key=lambda m: m.confidence, reverse=True)
        return results

    async def get_rule(self, rule_id: UUID) -> Optional[ProceduralMemory]:
        rule = self.rules.get(rule_id)
        return rule.model_copy(deep=True) if rule is not None else None

    async def get_rule_by_name(self, rule_name: str) -> Optional[ProceduralMemory]:
        for rule in self.rules.values():
            if rule.rule_name == rule_name:
                return rule.model_copy(deep=True)
        return None

    async def save_rule(self, rule: ProceduralMemory) -> None:
        self.rules[rule.id] = rule.model_copy(deep=True)

    async def list_rules(self, agent_id: str, enabled_only: bool = True) -> List[ProceduralMemory]:
        rules = [
            r.model_copy(deep=True)
            for r in self.rules.values()
            if r.agent_id == agent_id and (r.enabled or not enabled_only)
        ]
        return _rank_rules(rules)


class JsonPersistence(PersistenceStrategy):
    """File-based persistence using JSON for human-readable storage.

    Directory structure:
    ```
    {base_path}/
      episodes/
        {episode_id}.json
      episodes.order        # episode ids in insertion order
      semantic/
        {memory_id}.json
      rules/
        {rule_id}.json
    ```

    One pretty-printed file per record so retrieval-count and success-rate
    updates rewrite a single small file. Queries scan the directory, which is
    fine for small agents and easy debugging but not for large histories.

    Async operations:
    - All file I/O runs in a thread pool (asyncio.to_thread)
    - initialize() creates the directories
    - close() is no-op
    """

    def __init__(self, base_path: Path | str | None = None):
        self.base_path = Path(base_path) if base_path is not None else Config.STORE_PATH

    async def initialize(self) -> None:
        for name in ("episodes", "semantic", "rules"):
            await asyncio.to_thread((self.base_path / name).mkdir, parents=True, exist_ok=True)

    async def close(self) -> None:
        # Nothing to clean up for JSON persistence
        return None

    async def save_episode(self, episode: EpisodicMemory) -> None:
        is_new = not (self.base_path / "episodes" / f"{episode.id}.json").exists()
        await self._write("episodes", episode)
        if is_new:
            await asyncio.to_thread(self._append_order, episode.id)

    async def query_episodes(self, query: EpisodeQuery) -> List[EpisodicMemory]:
        episodes = await self._read_all("episodes", EpisodicMemory)
        matching = [e for e in episodes if query.matches(e)]
        # Equal timestamps keep the newest-inserted episode on top.
        order = await asyncio.to_thread(self._read_order)
        matching.sort(key=lambda e: (e.timestamp, order.get(e.id, -1)), reverse=True)
        return matching[: query.limit]

    async def mark_episodes_retrieved(
        self, episode_ids: Sequence[UUID], retrieved_at: datetime
    ) -> None:
        """Rewrite each episode file in turn.

        Not atomic: a crash part-way leaves earlier ids bumped and later ones
        untouched. The Postgres backend does this in a single UPDATE.
        """
        for episode_id in episode_ids:
            episode = await self._read_one("episodes", episode_id, EpisodicMemory)
            if episode is None:
                continue
            episode.retrieval_count += 1
            episode.last_retrieved_at = retrieved_at
            await self._write("episodes", episode)

    async def get_semantic_memory(self, agent_id: str, concept: str) -> Optional[SemanticMemory]:
        for memory in await self._read_all("semantic", SemanticMemory):
            if memory.agent_id == agent_id and memory.concept == concept:
                return memory
        return None

    async def save_semantic_memory(self, memory: SemanticMemory) -> None:
        await self._write("semantic", memory)

    async def query_semantic_memories(
        self,
        agent_id: str,
        concept: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> List[SemanticMemory]:
        results = [
            m
            for m in await self._read_all("semantic", SemanticMemory)
            if m.agent_id == agent_id
            and (concept is None or m.concept == concept)
            and (min_confidence is None or m.confidence >= min_confidence)
        ]
        results.sort(key=lambda m: m.confidence, reverse=True)
        return results

    async def get_rule(self, rule_id: UUID) -> Optional[ProceduralMemory]:
        return await self._read_one("rules", rule_id, ProceduralMemory)

    async def get_rule_by_name(self, rule_name: str) -> Optional[ProceduralMemory]:
        for rule in await self._read_all("rules", ProceduralMemory):
            if rule.rule_name == rule_name:
                return rule
        return None

    async def save_rule(self, rule: ProceduralMemory) -> None:
        await self._write("rules", rule)

    async def list_rules(self, agent_id: str, enabled_only: bool = True) -> List[ProceduralMemory]:
        rules = [
            r
            for r in await self._read_all("rules", ProceduralMemory)
            if r.agent_id == agent_id and (r.enabled or not enabled_only)
        ]
        # Stable tie order across runs: creation time, then id.
        rules.sort(key=lambda r: (r.created_at, str(r.id)))
        return _rank_rules(rules)

    def _append_order(self, episode_id: UUID) -> None:
        with open(self.base_path / "episodes.order", "a", encoding="utf-8") as fh:
            fh.write(f"{episode_id}\n")

    def _read_order(self) -> Dict[UUID, int]:
        path = self.base_path / "episodes.order"
        if not path.exists():
            return {}
        lines = path.read_text("utf-8").split()
        return {UUID(line): position for position, line in enumerate(lines)}

    async def _write(self, kind: str, record: BaseModel) -> None:
        path = self.base_path / kind / f"{record.id}.json"
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        payload = record.model_dump(mode="json")
        await asyncio.to_thread(path.write_text, json.dumps(payload, indent=2), "utf-8")

    async def _read_one(self, kind: str, record_id: UUID, model: Type[ModelT]) -> Optional[ModelT]:
        path = self.base_path / kind / f"{record_id}.json"
        if not path.exists():
            return None
        text = await asyncio.to_thread(path.read_text, "utf-8")
        return model.model_validate_json(text)

    async def _read_all(self, kind: str, model: Type[ModelT]) -> List[ModelT]:
        directory = self.base_path / kind
        if not directory.exists():
            return []

        def _read() -> List[str]:
            return [p.read_text("utf-8") for p in sorted(directory.glob("*.json"))]

        texts = await asyncio.to_thread(_read)
        return [model.model_validate_json(text) for text in texts]


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS agent_episodic_memory (
    id UUID PRIMARY KEY,
    agent_id TEXT NOT NULL,
    page_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    context JSONB NOT NULL DEFAULT '{}'::jsonb,
    outcome TEXT NOT NULL,
    surprise_score DOUBLE PRECISION NOT NULL DEFAULT 0.5,
    emotional_valence DOUBLE PRECISION NOT NULL DEFAULT 0,
    salience DOUBLE PRECISION NOT NULL DEFAULT 0.5,
    retrieval_count INTEGER NOT NULL DEFAULT 0,
    last_retrieved_at TIMESTAMPTZ,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now(),
    inserted_seq BIGSERIAL
);
CREATE INDEX IF NOT EXISTS idx_episodic_agent_event
    ON agent_episodic_memory (agent_id, event_type, timestamp DESC);

CREATE TABLE IF NOT EXISTS agent_semantic_memory (
    id UUID PRIMARY KEY,
    agent_id TEXT NOT NULL,
    concept TEXT NOT NULL,
    pattern JSONB NOT NULL DEFAULT '{}'::jsonb,
    confidence DOUBLE PRECISION NOT NULL,
    learned_from_count INTEGER NOT NULL DEFAULT 0,
    episode_ids UUID[] NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (agent_id, concept)
);

CREATE TABLE IF NOT EXISTS agent_procedural_memory (
    id UUID PRIMARY KEY,
    agent_id TEXT NOT NULL,
    rule_name TEXT NOT NULL UNIQUE,
    condition JSONB NOT NULL DEFAULT '{}'::jsonb,
    action JSONB NOT NULL DEFAULT '{}'::jsonb,
    description TEXT,
    success_rate DOUBLE PRECISION NOT NULL DEFAULT 0.5,
    learning_rate DOUBLE PRECISION NOT NULL DEFAULT 0.1,
    application_count INTEGER NOT NULL DEFAULT 0,
    last_application_outcome TEXT,
    mental_simulation_count INTEGER NOT NULL DEFAULT 0,
    priority INTEGER NOT NULL DEFAULT 0,
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

_EPISODE_COLUMNS = (
    "id, agent_id, page_id, event_type, context, outcome, surprise_score, "
    "emotional_valence, salience, retrieval_count, last_retrieved_at, timestamp"
)
_SEMANTIC_COLUMNS = (
    "id, agent_id, concept, pattern, confidence, learned_from_count, episode_ids, "
    "created_at, updated_at"
)
_RULE_COLUMNS = (
    "id, agent_id, rule_name, condition, action, description, success_rate, learning_rate, "
    "application_count, last_application_outcome, mental_simulation_count, priority, "
    "enabled, created_at, updated_at"
)


def _row_to_model(row: Any, model: Type[ModelT], json_fields: Sequence[str]) -> ModelT:
    data = dict(row)
    # asyncpg hands JSONB back as text unless a codec is registered
    for field in json_fields:
        value = data.get(field)
        if isinstance(value, str):
            data[field] = json.loads(value)
        elif value is None:
            data[field] = {}
    return model.model_validate(data)


class PostgresPersistence(PersistenceStrategy):
    """PostgreSQL-backed persistence for production agents.

    Stores memory tiers in three tables (see SCHEMA_SQL) using async
    connection pooling (asyncpg). Open payloads (context, pattern, condition,
    action) are JSONB columns.

    Schema setup:
    - Pass create_schema=True to run SCHEMA_SQL during initialize()
    - Or apply SCHEMA_SQL with your own migration tooling

    Connection management:
    - initialize() creates connection pool (reusable connections)
    - close() releases pool (clean shutdown)
    """

    def __init__(self, database_url: Optional[str] = None, *, create_schema: bool = False):
        if asyncpg is None:  # pragma: no cover - handled during runtime when dependency missing
            raise ImportError(
                "asyncpg is required for PostgresPersistence. Install with `pip install asyncpg`."
            )

        self.database_url = database_url or Config.DATABASE_URL
        self.create_schema = create_schema
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        if self.pool is not None:
            return

        try:
            self.pool = await asyncpg.create_pool(self.database_url)
        except (OSError, asyncpg.PostgresError) as exc:
            log_error(f"[Persistence] Could not connect to {self.database_url}: {exc}")
            raise

        if self.create_schema:
            async with self.pool.acquire() as conn:
                await conn.execute(SCHEMA_SQL)
            log_info("[Persistence] Memory schema ensured")

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    async def save_episode(self, episode: EpisodicMemory) -> None:
        assert self.pool is not None, "Persistence not initialized"

        query = f"""
            INSERT INTO agent_episodic_memory ({_EPISODE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, $8, $9, $10, $11, $12)
        """

        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                episode.id,
                episode.agent_id,
                episode.page_id,
                episode.event_type,
                json.dumps(episode.context),
                episode.outcome,
                episode.surprise_score,
                episode.emotional_valence,
                episode.salience,
                episode.retrieval_count,
                episode.last_retrieved_at,
                episode.timestamp,
            )

    async def query_episodes(self, query: EpisodeQuery) -> List[EpisodicMemory]:
        assert self.pool is not None, "Persistence not initialized"

        # Build the AND-ed WHERE clause from whichever filters are set.
        clauses = ["agent_id = $1"]
        params: List[Any] = [query.agent_id]
        for column, value, op in (
            ("page_id", query.page_id, "="),
            ("event_type", query.event_type, "="),
            ("outcome", query.outcome, "="),
            ("surprise_score", query.min_surprise, ">="),
        ):
            if value is None:
                continue
            params.append(value)
            clauses.append(f"{column} {op} ${len(params)}")

        params.append(query.limit)
        sql = f"""
            SELECT {_EPISODE_COLUMNS}
            FROM agent_episodic_memory
            WHERE {" AND ".join(clauses)}
            ORDER BY timestamp DESC, inserted_seq DESC
            LIMIT ${len(params)}
        """

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql, *params)

        return [_row_to_model(row, EpisodicMemory, ("context",)) for row in rows]

    async def mark_episodes_retrieved(
        self, episode_ids: Sequence[UUID], retrieved_at: datetime
    ) -> None:
        assert self.pool is not None, "Persistence not initialized"

        if not episode_ids:
            return

        query = """
            UPDATE agent_episodic_memory
            SET retrieval_count = retrieval_count + 1, last_retrieved_at = $2
            WHERE id = ANY($1::uuid[])
        """

        async with self.pool.acquire() as conn:
            await conn.execute(query, list(episode_ids), retrieved_at)

    async def get_semantic_memory(self, agent_id: str, concept: str) -> Optional[SemanticMemory]:
        assert self.pool is not None, "Persistence not initialized"

        query = f"""
            SELECT {_SEMANTIC_COLUMNS}
            FROM agent_semantic_memory
            WHERE agent_id = $1 AND concept = $2
            LIMIT 1
        """

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, agent_id, concept)

        if not row:
            return None
        return _row_to_model(row, SemanticMemory, ("pattern",))

    async def save_semantic_memory(self, memory: SemanticMemory) -> None:
        assert self.pool is not None, "Persistence not initialized"

        query = f"""
            INSERT INTO agent_semantic_memory ({_SEMANTIC_COLUMNS})
            VALUES ($1, $2, $3, $4::jsonb, $5, $6, $7::uuid[], $8, $9)
            ON CONFLICT (id) DO UPDATE
            SET pattern=$4::jsonb, confidence=$5, learned_from_count=$6,
                episode_ids=$7::uuid[], updated_at=$9
        """

        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                memory.id,
                memory.agent_id,
                memory.concept,
                json.dumps(memory.pattern),
                memory.confidence,
                memory.learned_from_count,
                memory.episode_ids,
                memory.created_at,
                memory.updated_at,
            )

    async def query_semantic_memories(
        self,
        agent_id: str,
        concept: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> List[SemanticMemory]:
        assert self.pool is not None, "Persistence not initialized"

        clauses = ["agent_id = $1"]
        params: List[Any] = [agent_id]
        if concept is not None:
            params.append(concept)
            clauses.append(f"concept = ${len(params)}")
        if min_confidence is not None:
            params.append(min_confidence)
            clauses.append(f"confidence >= ${len(params)}")

        query = f"""
            SELECT {_SEMANTIC_COLUMNS}
            FROM agent_semantic_memory
            WHERE {" AND ".join(clauses)}
            ORDER BY confidence DESC
        """

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)

        return [_row_to_model(row, SemanticMemory, ("pattern",)) for row in rows]

    async def get_rule(self, rule_id: UUID) -> Optional[ProceduralMemory]:
        return await self._fetch_rule("id = $1", rule_id)

    async def get_rule_by_name(self, rule_name: str) -> Optional[ProceduralMemory]:
        return await self._fetch_rule("rule_name = $1", rule_name)

    async def save_rule(self, rule: ProceduralMemory) -> None:
        assert self.pool is not None, "Persistence not initialized"

        query = f"""
            INSERT INTO agent_procedural_memory ({_RULE_COLUMNS})
            VALUES ($1, $2, $3, $4::jsonb, $5::jsonb, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
            ON CONFLICT (id) DO UPDATE
            SET condition=$4::jsonb, action=$5::jsonb, description=$6, success_rate=$7,
                learning_rate=$8, application_count=$9, last_application_outcome=$10,
                mental_simulation_count=$11, priority=$12, enabled=$13, updated_at=$15
        """

        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                rule.id,
                rule.agent_id,
                rule.rule_name,
                json.dumps(rule.condition),
                json.dumps(rule.action),
                rule.description,
                rule.success_rate,
                rule.learning_rate,
                rule.application_count,
                rule.last_application_outcome,
                rule.mental_simulation_count,
                rule.priority,
                rule.enabled,
                rule.created_at,
                rule.updated_at,
            )

    async def list_rules(self, agent_id: str, enabled_only: bool = True) -> List[ProceduralMemory]:
        assert self.pool is not None, "Persistence not initialized"

        query = f"""
            SELECT {_RULE_COLUMNS}
            FROM agent_procedural_memory
            WHERE agent_id = $1 AND (enabled OR NOT $2)
            ORDER BY priority DESC, success_rate DESC, created_at
        """

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, agent_id, enabled_only)

        return [_row_to_model(row, ProceduralMemory, ("condition", "action")) for row in rows]

    async def _fetch_rule(self, where: str, value: Any) -> Optional[ProceduralMemory]:
        assert self.pool is not None, "Persistence not initialized"

        query = f"""
            SELECT {_RULE_COLUMNS}
            FROM agent_procedural_memory
            WHERE {where}
            LIMIT 1
        """

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, value)

        if not row:
            return None
        return _row_to_model(row, ProceduralMemory, ("condition", "action"))
