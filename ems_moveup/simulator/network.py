"""
Road network travel-time lookups backed by a networkx graph and a path cache.
"""

from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx
import numpy as np


class TravelNetwork:
    """
    Shortest-path travel times (minutes) and distances over a road graph.

    Edges carry a ``travel_time`` attribute and optionally a ``length``
    attribute; nodes may carry ``x``/``y`` coordinates. Results are stored in
    ``path_cache[source][target] = {"path", "travel_time", "length"}``, so a
    precomputed cache in that layout can be passed in directly.

    The cache is filled for every node on construction unless ``precompute`` is
    False, so a network shared between replications is never written to once
    runs start.
    """

    def __init__(self,
                 graph: nx.Graph,
                 *,
                 weight: str = "travel_time",
                 length_attr: str = "length",
                 path_cache: Optional[Dict] = None,
                 precompute: bool = True) -> None:
        if graph.is_multigraph():
            raise ValueError("TravelNetwork expects a simple Graph or DiGraph, not a multigraph")
        self.graph = graph
        self.weight = weight
        self.length_attr = length_attr
        self.path_cache: Dict[int, Dict[int, Dict]] = path_cache if path_cache is not None else {}
        if precompute:
            for node in graph.nodes:
                self._ensure_source(node)

    def _ensure_source(self, source: int) -> Dict[int, Dict]:
        entry = self.path_cache.get(source)
        if entry is not None:
            return entry
        times, paths = nx.single_source_dijkstra(self.graph, source, weight=self.weight)
        entry = {}
        for target, path in paths.items():
            length = sum(self.edge_length(u, v) for u, v in zip(path[:-1], path[1:]))
            entry[target] = {"path": path, "travel_time": float(times[target]), "length": length}
        self.path_cache[source] = entry
        return entry

    def _lookup(self, source: int, target: int) -> Dict:
        try:
            return self._ensure_source(source)[target]
        except KeyError:
            raise ValueError(f"No path from node {source} to node {target}") from None

    @property
    def nodes(self) -> List[int]:
        return list(self.graph.nodes)

    def travel_time(self, source: int, target: int) -> float:
        if source == target:
            return 0.0
        return self._lookup(source, target)["travel_time"]

    def path(self, source: int, target: int) -> List[int]:
        if source == target:
            return [source]
        return self._lookup(source, target)["path"]

    def edge_travel_time(self, u: int, v: int) -> float:
        return float(self.graph[u][v][self.weight])

    def edge_length(self, u: int, v: int) -> float:
        return float(self.graph[u][v].get(self.length_attr, 0.0))

    def travel_time_matrix(self, sources: Iterable[int], targets: Iterable[int]) -> np.ndarray:
        targets = list(targets)
        return np.array([[self.travel_time(s, t) for t in targets] for s in sources])

    def coords(self, node: int) -> Tuple[float, float]:
        data = self.graph.nodes[node]
        return float(data.get("x", 0.0)), float(data.get("y", 0.0))

    def nearest(self, node: int, candidates: Iterable) -> Optional[object]:
        """Candidate (anything with a ``node`` attribute) closest to ``node`` by travel time."""
        best, best_time = None, np.inf
        for candidate in candidates:
            t = self.travel_time(node, candidate.node)
            if t < best_time:
                best, best_time = candidate, t
        return best
