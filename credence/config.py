"""
Credence Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Storage Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://localhost/credence")
    # Base directory for JsonPersistence record files
    STORE_PATH: Path = Path(os.getenv("CREDENCE_STORE_PATH", "memory_store"))

    # Chunking (episodic -> semantic generalization)
    CHUNK_MIN_EPISODES: int = int(os.getenv("CHUNK_MIN_EPISODES", "3"))
    CHUNK_CONFIDENCE_THRESHOLD: float = float(os.getenv("CHUNK_CONFIDENCE_THRESHOLD", "0.6"))
    CHUNK_SIMILARITY_THRESHOLD: float = float(os.getenv("CHUNK_SIMILARITY_THRESHOLD", "0.7"))

    # Procedural memory
    RULE_LEARNING_RATE: float = float(os.getenv("RULE_LEARNING_RATE", "0.1"))

    # Episodic recall
    RECALL_LIMIT: int = int(os.getenv("RECALL_LIMIT", "50"))
    MEMORY_HALF_LIFE_HOURS: float = float(os.getenv("MEMORY_HALF_LIFE_HOURS", "168"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if values are out of range."""
        if cls.CHUNK_MIN_EPISODES < 1:
            raise ValueError("CHUNK_MIN_EPISODES must be at least 1")

        for name in ("CHUNK_CONFIDENCE_THRESHOLD", "CHUNK_SIMILARITY_THRESHOLD"):
            value = getattr(cls, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1 (got {value})")

        if not 0.0 < cls.RULE_LEARNING_RATE <= 1.0:
            raise ValueError(
                f"RULE_LEARNING_RATE must be in (0, 1] (got {cls.RULE_LEARNING_RATE})"
            )

        if cls.RECALL_LIMIT < 1:
            raise ValueError("RECALL_LIMIT must be at least 1")

        if cls.MEMORY_HALF_LIFE_HOURS <= 0:
            raise ValueError("MEMORY_HALF_LIFE_HOURS must be positive")

        if cls.LOG_LEVEL.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(
                "LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR "
                f"(got {cls.LOG_LEVEL!r})"
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Credence Configuration:",
            f"  Database: {cls.DATABASE_URL}",
            f"  Store Path: {cls.STORE_PATH}",
            f"  Chunking: min_episodes={cls.CHUNK_MIN_EPISODES}, "
            f"confidence>={cls.CHUNK_CONFIDENCE_THRESHOLD}",
            f"  Rule Learning Rate: {cls.RULE_LEARNING_RATE}",
            f"  Recall Limit: {cls.RECALL_LIMIT}",
            f"  Memory Half-Life: {cls.MEMORY_HALF_LIFE_HOURS}h",
            f"  Log Level: {cls.LOG_LEVEL}",
        ]
        return "\n".join(lines)
