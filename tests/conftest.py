"""
Pytest configuration and shared fixtures for test isolation.
"""
from datetime import timedelta

import numpy as np
import pytest

from ideaweb.config import Config
from ideaweb.embeddings import TextProcessor
from ideaweb.store import Idea, MemoryStore, utcnow
from ideaweb.storage.sqlite_store import SqliteStore
from ideaweb.text_utils import lemmatize, words


@pytest.fixture(autouse=True)
def reset_config():
    """Restore every config section after each test."""
    snapshot = Config.to_dict()
    yield
    Config.from_dict(snapshot, apply_env_overrides=False)


# --- Fake encoder ---
# Each known word votes for one topic axis; unknown words land on a weak
# "misc" axis. Enough structure for intent and similarity thresholds.
TOPICS = {
    "grocery": """milk egg bread grocery list shopping food produce meat supermarket
                  supply potato chicken butter cheese breakfast""",
    "work": """work project meeting task professional office deadline business colleague
               report""",
    "health": "health fitness exercise medical doctor wellbeing gym workout symptom",
    "finance": "finance money budget banking expense payment tax investment",
    "creative": "creative idea inspiration art writing design music",
    "home": "home family chore household renovation lifestyle garden",
    "tech": "technology coding software gadget computer programming ai",
    "plans": "plan schedule travel calendar event appointment trip",
    "learning": "learning study research book course knowledge student paper",
}
AXES = list(TOPICS) + ["misc"]
WORD_AXIS = {w: AXES.index(topic) for topic, ws in TOPICS.items() for w in ws.split()}


class TopicEncoder:
    def __init__(self):
        self.calls = 0

    def encode(self, text):
        self.calls += 1
        vec = np.zeros(len(AXES), dtype=np.float32)
        for word in words(text):
            axis = WORD_AXIS.get(lemmatize(word))
            if axis is None:
                vec[-1] += 0.3
            else:
                vec[axis] += 1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec


def topic_vector(topic, misc=0.0):
    vec = np.zeros(len(AXES), dtype=np.float32)
    vec[AXES.index(topic)] = 1.0
    vec[-1] = misc
    return vec / np.linalg.norm(vec)


@pytest.fixture
def encoder():
    return TopicEncoder()


@pytest.fixture
def processor(encoder):
    return TextProcessor(encoder)


@pytest.fixture
def memory_store():
    store = MemoryStore()
    yield store
    store.close()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteStore(str(tmp_path / "ideas.db"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        store = MemoryStore()
    else:
        store = SqliteStore(str(tmp_path / "ideas.db"))
    yield store
    store.close()


def make_idea(content="note", days_ago=0.0, tags=None, embedding=None, keywords=None, now=None):
    now = now or utcnow()
    idea = Idea.create(content, created_at=now - timedelta(days=days_ago))
    idea.theme_tags = list(tags or [])
    idea.keywords = list(keywords or [])
    if embedding is not None:
        idea.embedding = np.asarray(embedding, dtype=np.float32)
    return idea
