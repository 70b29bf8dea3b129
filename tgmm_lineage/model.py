"""The imported lineage model and its assembly."""

import logging
from collections import Counter

import networkx as nx
import pandas as pd

from .features import compute_features
from .lineage import label_tracks
from .spots import POSITION_T, SPOT_FEATURES

logger = logging.getLogger(__name__)

WARNING_KINDS = ("parse", "missing-frame", "degenerate", "out-of-order")


class ImportReport:
    """Warnings collected during one import, counted per kind."""

    def __init__(self):
        self.warnings = []
        self.counts = Counter()
        self.n_frames = 0

    def add(self, problem):
        self.warnings.append(problem)
        self.counts[problem.kind] += 1

    @property
    def n_warnings(self):
        return len(self.warnings)

    def summary(self, n_spots):
        kinds = list(WARNING_KINDS) + sorted(k for k in self.counts if k not in WARNING_KINDS)
        detail = ", ".join(f"{self.counts[k]} {k}" for k in kinds)
        return (f"imported {n_spots} spots over {self.n_frames} frames; "
                f"{self.n_warnings} warnings ({detail})")


class SpotCollection:
    """Spots keyed by frame, ordered by id inside a frame."""

    def __init__(self, spots=()):
        self._by_frame = {}
        self._by_id = {}
        for spot in spots:
            self.add(spot)

    def add(self, spot):
        if spot.id in self._by_id:
            raise ValueError(f"Duplicate spot id {spot.id}")
        self._by_id[spot.id] = spot
        frame = self._by_frame.setdefault(spot.frame, [])
        frame.append(spot)
        if len(frame) > 1 and frame[-2].id > spot.id:
            frame.sort(key=lambda s: s.id)

    def frames(self):
        return sorted(self._by_frame)

    def in_frame(self, frame):
        return list(self._by_frame.get(frame, ()))

    def get(self, spot_id):
        return self._by_id[spot_id]

    def __contains__(self, spot_id):
        return spot_id in self._by_id

    def __iter__(self):
        for frame in self.frames():
            yield from self._by_frame[frame]

    def __len__(self):
        return len(self._by_id)


class Model:
    """
    Imported lineage: spots, links, tracks and feature caches.

    ``graph`` is a frozen networkx.DiGraph over spot ids. Spot features
    live on the spots; edge and track features live in ``edge_features``
    and ``track_features``. ``broken_links`` lists the links removed by
    the split policy, for lineage bookkeeping.
    """

    def __init__(self, spots, graph, dt=1.0, broken_links=(), report=None):
        self.spots = spots
        self.graph = graph
        self.dt = dt
        self.broken_links = sorted(broken_links)
        self.report = report if report is not None else ImportReport()
        self.track_of, self.tracks = label_tracks(graph)
        self.edge_features = {edge: {} for edge in self.edges}
        self.track_features = {tid: {} for tid in self.tracks}

    @classmethod
    def empty(cls, dt=1.0, report=None):
        return cls(SpotCollection(), nx.freeze(nx.DiGraph()), dt=dt, report=report)

    @property
    def n_spots(self):
        return len(self.spots)

    @property
    def n_edges(self):
        return self.graph.number_of_edges()

    @property
    def n_tracks(self):
        return len(self.tracks)

    @property
    def edges(self):
        return sorted(self.graph.edges)

    def spot(self, spot_id):
        return self.spots.get(spot_id)

    def edge_weight(self, source, target):
        return self.graph.edges[source, target]["weight"]

    def track_spots(self, track_id):
        return [self.spot(sid) for sid in self.tracks[track_id]]

    def track_edges(self, track_id):
        return [(s, t) for s in self.tracks[track_id] for t in sorted(self.graph.successors(s))]

    def spots_dataframe(self):
        """One row per spot: spot_id, frame, track_id and every spot feature."""
        rows = []
        for spot in self.spots:
            rec = {"spot_id": spot.id, "frame": spot.frame, "track_id": self.track_of[spot.id]}
            rec.update(spot.features)
            rows.append(rec)
        if not rows:
            return pd.DataFrame(columns=["spot_id", "frame", "track_id"] + list(SPOT_FEATURES))
        return pd.DataFrame(rows)

    def edges_dataframe(self):
        """One row per edge: source, target, weight and every edge feature."""
        rows = []
        for s, t in self.edges:
            rec = {"source": s, "target": t, "weight": self.edge_weight(s, t)}
            rec.update(self.edge_features[(s, t)])
            rows.append(rec)
        if not rows:
            return pd.DataFrame(columns=["source", "target", "weight"])
        return pd.DataFrame(rows)

    def tracks_dataframe(self):
        """Track features indexed by track_id."""
        rows = [dict(track_id=tid, **self.track_features[tid]) for tid in sorted(self.tracks)]
        if not rows:
            return pd.DataFrame(columns=["track_id"]).set_index("track_id")
        return pd.DataFrame(rows).set_index("track_id")


def assemble_model(spots, graph, dt=1.0, analyzers=None, broken_links=(), report=None):
    """
    Build the final Model from the kept spots and the (transformed) graph.

    Seeds POSITION_T = frame * dt, labels tracks, freezes the graph and runs
    the feature analyzers once, in order, on the finished model.
    """
    spots = sorted(spots, key=lambda s: s.id)
    collection = SpotCollection(spots)

    G = nx.DiGraph()
    for spot in spots:
        spot.features[POSITION_T] = spot.frame * dt
        G.add_node(spot.id, spot=spot)
    for s, t in sorted(graph.edges):
        if s not in collection or t not in collection:
            raise ValueError(f"Edge {s}->{t} refers to a spot that is not in the model")
        if collection.get(s).frame + 1 != collection.get(t).frame:
            raise ValueError(f"Edge {s}->{t} does not span exactly one frame")
        G.add_edge(s, t, weight=graph.edges[s, t].get("weight", 1.0))
    if any(d > 1 for _, d in G.in_degree()):
        raise ValueError("A spot has more than one parent")

    model = Model(collection, nx.freeze(G), dt=dt, broken_links=broken_links, report=report)
    logger.info("Assembled model: %d spots, %d edges, %d tracks",
                model.n_spots, model.n_edges, model.n_tracks)
    if analyzers is not None:
        compute_features(model, analyzers)
    return model
