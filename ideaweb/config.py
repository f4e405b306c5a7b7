import os
from dataclasses import dataclass, fields
from typing import Dict, Any


def _env(name: str, default: str) -> str:
    return os.getenv(f"IDEAWEB_{name}", default)


@dataclass
class CoreConfig:
    VECTOR_DIM: int = int(_env("VECTOR_DIM", "384"))  # Default for MiniLM
    SEED: int = 13
    DEBUG: bool = _env("DEBUG", "0") == "1"


@dataclass
class StorageConfig:
    # Directory for the SQLite idea store
    DATA_DIR: str = _env("DATA_DIR", os.path.expanduser("~/.ideaweb"))
    SQLITE_DB_NAME: str = "ideas.db"


@dataclass
class EmbeddingConfig:
    MINILM_MODEL: str = _env("MINILM_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
    # Empty lets sentence-transformers pick cuda or cpu
    DEVICE: str = _env("DEVICE", "")
    # Texts shorter than this never get an embedding
    MIN_EMBED_CHARS: int = 3


@dataclass
class SimilarityConfig:
    LEXICAL_THRESHOLD: float = float(_env("LEXICAL_THRESHOLD", "0.25"))
    SEMANTIC_THRESHOLD: float = float(_env("SEMANTIC_THRESHOLD", "0.72"))
    CANDIDATE_POOL: int = 200  # Most recent ideas scored per capture


@dataclass
class GraphConfig:
    DENSITY_SAMPLE_CAP: int = 50
    ISOLATED_TOP_CLUSTERS: int = 4


@dataclass
class MomentumConfig:
    RECENT_DAYS: int = 7
    PRIOR_DAYS: int = 14  # Prior window spans RECENT_DAYS..PRIOR_DAYS ago
    COOLDOWN_DAYS: int = 14
    MAX_SIGNALS: int = 3
    DENSITY_FLOOR: float = 0.1

    # Fading gates (raw counts, not density)
    FADING_MIN_TOTAL: int = 10
    FADING_MIN_PRIOR: int = 4
    FADING_MAX_RECENT: int = 1


@dataclass
class IntentConfig:
    ELEVATION_THRESHOLD: float = 0.70
    OBSESSION_WINDOW: int = 15
    OBSESSION_MIN_COUNT: int = 3


@dataclass
class PipelineConfig:
    TOP_KEYWORD_TAGS: int = 3
    MAX_TAGS: int = 5
    REPROCESS_BATCH_SIZE: int = 50
    MAX_WORKERS: int = int(_env("MAX_WORKERS", "2"))


@dataclass
class SynthesisConfig:
    WINDOW: int = 30
    LOW: float = 0.65
    HIGH: float = 0.95
    MAX_PAIRS: int = 10


@dataclass
class ReferenceConfig:
    POOL_SIZE: int = 100
    THRESHOLD: float = 0.72
    TOP_K: int = 3
    MIN_CHARS: int = 10


@dataclass
class LayoutConfig:
    # Physics parameters
    REPULSION: float = 800.0
    ATTRACTION: float = 0.006
    GRAVITY: float = 0.01
    INTENT_GRAVITY_FACTOR: float = 1.5
    DAMPING: float = 0.85
    SETTLE_THRESHOLD: float = 0.5

    # Safety valve against O(n^2) repulsion
    MAX_SIMULATED_NODES: int = 400

    # Canvas geometry
    MARGIN: float = 20.0
    SPAWN_MARGIN: float = 40.0
    MIN_DISTANCE_SQ: float = 100.0
    STAR_RADIUS_FRACTION: float = 0.35

    # Visibility
    FOCUS_DIM_ALPHA: float = 0.15
    VISIBLE_ALPHA: float = 0.01


_SECTIONS = [
    "core", "storage", "embedding", "similarity", "graph", "momentum",
    "intents", "pipeline", "synthesis", "references", "layout",
]


class Config:
    """Centralized configuration for the idea graph engine."""
    core = CoreConfig()
    storage = StorageConfig()
    embedding = EmbeddingConfig()
    similarity = SimilarityConfig()
    graph = GraphConfig()
    momentum = MomentumConfig()
    intents = IntentConfig()
    pipeline = PipelineConfig()
    synthesis = SynthesisConfig()
    references = ReferenceConfig()
    layout = LayoutConfig()

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Serialize all config sections to a flat dictionary."""
        result = {}
        for section_name in _SECTIONS:
            section = getattr(cls, section_name)
            for f in fields(section):
                key = f"{section_name}.{f.name}"
                result[key] = getattr(section, f.name)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], apply_env_overrides: bool = True):
        """
        Update config from a flat dictionary.
        If apply_env_overrides is True, environment variables take precedence.
        """
        for key, value in data.items():
            if "." not in key:
                continue
            section_name, field_name = key.split(".", 1)
            if section_name not in _SECTIONS:
                continue
            section = getattr(cls, section_name)
            if not hasattr(section, field_name):
                continue

            if apply_env_overrides and f"IDEAWEB_{field_name}" in os.environ:
                continue

            # Type conversion
            current_value = getattr(section, field_name)
            if isinstance(current_value, bool):
                value = str(value).lower() in ("1", "true", "yes")
            elif isinstance(current_value, int):
                value = int(value)
            elif isinstance(current_value, float):
                value = float(value)

            setattr(section, field_name, value)

    @classmethod
    def diff(cls, other_dict: Dict[str, Any]) -> Dict[str, tuple]:
        """
        Compare current config with another dict.
        Returns dict of {key: (current_value, other_value)} for differences.
        """
        current = cls.to_dict()
        differences = {}
        for key in set(current.keys()) | set(other_dict.keys()):
            curr_val = current.get(key)
            other_val = other_dict.get(key)
            if curr_val != other_val:
                differences[key] = (curr_val, other_val)
        return differences

    @classmethod
    def get_db_path(cls) -> str:
        """Default path of the SQLite idea store."""
        return os.path.join(cls.storage.DATA_DIR, cls.storage.SQLITE_DB_NAME)
