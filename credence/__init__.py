"""
Credence - probabilistic preference tracking and multi-tier agent memory.

Two cooperating components:
- BeliefEngine: per-session Bayesian beliefs about a user, folded into a
  concrete preference snapshot
- AgentMemoryStore: episodic, semantic (chunked) and procedural memory for
  autonomous agents, over a pluggable persistence backend

No global state. No database required (in-memory default).
All dependencies injected by the caller.
"""

__version__ = "0.1.0"

# Core components
from .beliefs import (
    BeliefEngine,
    DEFAULT_PRIORS,
    bayes_rule,
    calculate_likelihood,
    derive_preferences,
    evidence_probability,
)
from .memory import AgentMemoryStore, evaluate_condition, ema_update, memory_strength
from .chunking import extract_common_patterns, merge_contexts
from .persistence import (
    PersistenceStrategy,
    InMemoryPersistence,
    JsonPersistence,
    PostgresPersistence,
    SCHEMA_SQL,
)
from .config import Config

# Schemas
from .schemas import (
    Evidence,
    Belief,
    CodeStyle,
    CommunicationStyle,
    UserPreference,
    ResponseParameters,
    EpisodicMemory,
    SemanticMemory,
    ProceduralMemory,
    MentalSimulationResult,
    ChunkingConfig,
    EpisodeQuery,
)

__all__ = [
    # Belief engine
    "BeliefEngine",
    "DEFAULT_PRIORS",
    "bayes_rule",
    "calculate_likelihood",
    "derive_preferences",
    "evidence_probability",
    # Memory store
    "AgentMemoryStore",
    "evaluate_condition",
    "ema_update",
    "memory_strength",
    "extract_common_patterns",
    "merge_contexts",
    # Persistence
    "PersistenceStrategy",
    "InMemoryPersistence",
    "JsonPersistence",
    "PostgresPersistence",
    "SCHEMA_SQL",
    "Config",
    # Belief schemas
    "Evidence",
    "Belief",
    "CodeStyle",
    "CommunicationStyle",
    "UserPreference",
    "ResponseParameters",
    # Memory schemas
    "EpisodicMemory",
    "SemanticMemory",
    "ProceduralMemory",
    "MentalSimulationResult",
    "ChunkingConfig",
    "EpisodeQuery",
]
