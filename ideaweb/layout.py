"""
Force-directed layout for the idea web.

A discrete-time simulation advanced one step per `tick()` (one per display
frame) until its kinetic energy drops below the settle threshold:

    repulsion   REPULSION / d^2 between every pair of simulated nodes
    attraction  ATTRACTION * d^2 along every edge
    gravity     GRAVITY * (centre - p), plus a stronger pull toward the
                node's first intent "star"
    integrate   v = (v + F) * DAMPING ; p += v ; clamp to the canvas

Not thread-safe: one owner drives configure() and tick().
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .config import Config, LayoutConfig
from .graph import Adjacency
from .intents import ALL_INTENT_TAGS
from .store import Idea, IdeaStatus, utcnow


@dataclass
class LayoutNode:
    idea_id: str
    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))
    centrality: float = 0.0
    status: IdeaStatus = IdeaStatus.ACTIVE
    is_cognitive_core: bool = False
    cluster_index: Optional[int] = None
    intents: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def radius(self) -> float:
        return 5.0 + 8.0 * self.centrality


def _core_ids(cognitive_core) -> Set[str]:
    if cognitive_core is None:
        return set()
    return set(getattr(cognitive_core, "cluster_ids", cognitive_core))


class ForceDirectedLayout:
    def __init__(
        self,
        canvas_size: Tuple[float, float] = (400.0, 400.0),
        seed: Optional[int] = None,
        config: Optional[LayoutConfig] = None,
    ):
        self.config = config or Config.layout
        self.nodes: Dict[str, LayoutNode] = {}
        self.adjacency: Adjacency = {}
        self.is_settled = False
        self.time_cutoff: Optional[datetime] = None
        self.focus_ids: Optional[Set[str]] = None
        self._rng = np.random.default_rng(seed)
        self._canvas = (float(canvas_size[0]), float(canvas_size[1]))
        self._star_cache: Dict[str, Tuple[float, float]] = {}

    # --- Canvas ---
    @property
    def canvas_size(self) -> Tuple[float, float]:
        return self._canvas

    @canvas_size.setter
    def canvas_size(self, size: Tuple[float, float]):
        self._canvas = (float(size[0]), float(size[1]))
        self._star_cache.clear()
        self.wake()

    @property
    def center(self) -> np.ndarray:
        return np.array([self._canvas[0] / 2.0, self._canvas[1] / 2.0])

    # --- Graph refresh ---
    def configure(
        self,
        ideas: Sequence[Idea],
        adjacency: Adjacency,
        centrality: Dict[str, float],
        cognitive_core,
        clusters: Sequence[Sequence[str]],
        intent_map: Optional[Dict[str, List[str]]] = None,
    ):
        """
        Merge fresh graph data into the node state. New nodes spawn at random
        inside the canvas, vanished ones are dropped, survivors keep their
        position and velocity.
        """
        intent_map = intent_map or {}
        core = _core_ids(cognitive_core)
        cluster_of = {}
        for index, cluster in enumerate(clusters):
            for idea_id in cluster:
                cluster_of[idea_id] = index

        width, height = self._canvas
        margin = self.config.SPAWN_MARGIN
        nodes = {}
        for idea in ideas:
            node = self.nodes.get(idea.idea_id)
            if node is None:
                node = LayoutNode(
                    idea_id=idea.idea_id,
                    position=np.array([
                        self._rng.uniform(margin, max(margin, width - margin)),
                        self._rng.uniform(margin, max(margin, height - margin)),
                    ]),
                )
            node.centrality = float(centrality.get(idea.idea_id, 0.0))
            node.status = idea.status
            node.is_cognitive_core = idea.idea_id in core
            node.cluster_index = cluster_of.get(idea.idea_id)
            node.intents = list(intent_map.get(idea.idea_id, []))
            node.created_at = idea.created_at
            nodes[idea.idea_id] = node

        self.nodes = nodes
        self.adjacency = adjacency
        self.is_settled = False

    def wake(self):
        self.is_settled = False

    # --- Visibility ---
    def alpha(self, idea_id: str) -> float:
        node = self.nodes.get(idea_id)
        if node is None:
            return 0.0
        if self.time_cutoff is not None and node.created_at > self.time_cutoff:
            return 0.0
        if self.focus_ids is not None:
            return 1.0 if idea_id in self.focus_ids else self.config.FOCUS_DIM_ALPHA
        return 1.0

    def set_focus(self, ids: Optional[Iterable[str]]):
        self.focus_ids = None if ids is None else set(ids)
        self.wake()

    def set_time_cutoff(self, when: Optional[datetime]):
        self.time_cutoff = when
        self.wake()

    def _simulated_ids(self) -> List[str]:
        visible = [i for i in self.nodes if self.alpha(i) > self.config.VISIBLE_ALPHA]
        cap = self.config.MAX_SIMULATED_NODES
        if len(visible) > cap:
            visible = sorted(visible, key=lambda i: self.nodes[i].centrality, reverse=True)[:cap]
        return visible

    # --- Intent stars ---
    def star_position(self, intent: str) -> Tuple[float, float]:
        """Fixed anchor for an intent on a circle around the canvas centre."""
        cached = self._star_cache.get(intent)
        if cached is not None:
            return cached
        cx, cy = self.center
        if intent not in ALL_INTENT_TAGS:
            point = (float(cx), float(cy))
        else:
            angle = ALL_INTENT_TAGS.index(intent) * (2 * math.pi / len(ALL_INTENT_TAGS))
            distance = min(self._canvas) * self.config.STAR_RADIUS_FRACTION
            point = (float(cx + math.cos(angle) * distance), float(cy + math.sin(angle) * distance))
        self._star_cache[intent] = point
        return point

    # --- Simulation ---
    def tick(self):
        if self.is_settled:
            return
        cfg = self.config
        ids = self._simulated_ids()
        n = len(ids)
        if n == 0:
            self.is_settled = True
            return

        pos = np.stack([self.nodes[i].position for i in ids]).astype(np.float64)
        vel = np.stack([self.nodes[i].velocity for i in ids]).astype(np.float64)
        forces = np.zeros_like(pos)

        # 1. Pairwise repulsion
        diff = pos[:, None, :] - pos[None, :, :]
        dist_sq = np.maximum(np.sum(diff * diff, axis=-1), cfg.MIN_DISTANCE_SQ)
        dist = np.sqrt(dist_sq)
        forces += np.sum(diff * (cfg.REPULSION / (dist_sq * dist))[:, :, None], axis=1)

        # 2. Attraction along edges, both directions
        index = {idea_id: k for k, idea_id in enumerate(ids)}
        src, dst = [], []
        for source, neighbors in self.adjacency.items():
            s = index.get(source)
            if s is None:
                continue
            for target in neighbors:
                t = index.get(target)
                if t is not None and t != s:
                    src.append(s)
                    dst.append(t)
        if src:
            src = np.array(src)
            dst = np.array(dst)
            delta = pos[dst] - pos[src]
            d = np.maximum(np.linalg.norm(delta, axis=1), 1.0)
            # unit(delta) * d^2 * ATTRACTION
            np.add.at(forces, src, delta * (d * cfg.ATTRACTION)[:, None])

        # 3. Gravity toward the centre and toward each node's intent star
        forces += (self.center - pos) * cfg.GRAVITY
        for k, idea_id in enumerate(ids):
            intents = self.nodes[idea_id].intents
            if intents:
                star = np.array(self.star_position(intents[0]))
                forces[k] += (star - pos[k]) * (cfg.GRAVITY * cfg.INTENT_GRAVITY_FACTOR)

        # 4. Integrate
        vel = (vel + forces) * cfg.DAMPING
        pos = pos + vel
        width, height = self._canvas
        pos[:, 0] = np.clip(pos[:, 0], cfg.MARGIN, width - cfg.MARGIN)
        pos[:, 1] = np.clip(pos[:, 1], cfg.MARGIN, height - cfg.MARGIN)

        for k, idea_id in enumerate(ids):
            node = self.nodes[idea_id]
            node.position = pos[k]
            node.velocity = vel[k]

        if float(np.sum(vel * vel)) < cfg.SETTLE_THRESHOLD:
            self.is_settled = True

    def run(self, max_ticks: int = 1000) -> int:
        """Tick until settled or `max_ticks`; returns the ticks taken."""
        for step in range(max_ticks):
            if self.is_settled:
                return step
            self.tick()
        return max_ticks

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {i: (float(n.position[0]), float(n.position[1])) for i, n in self.nodes.items()}
