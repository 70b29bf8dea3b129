"""Linking spots across frames, breaking divisions, labelling tracks."""

import logging
from collections import defaultdict

import networkx as nx
import pandas as pd

from .config import SplitPolicy
from .errors import OutOfOrderParent

logger = logging.getLogger(__name__)


class LineageLinker:
    """
    Build the time-forward spot graph one frame at a time.

    Only the local-id -> spot map of the last added frame is retained, so
    parents are resolved against the previous generation and memory stays
    bounded by the largest frame. Nodes are spot ids carrying the spot in
    the ``spot`` attribute; edges carry a ``weight``.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self.problems = []
        self._previous = {}

    def add_frame(self, frame, entries):
        """
        Add the surviving spots of ``frame``.

        Parameters
        ----------
        frame : int
        entries : iterable of (Spot, int, int or None)
            ``(spot, local_id, parent_local_id)`` in record order.

        Returns
        -------
        n_links : int
            Number of edges added for this frame.
        """
        current = {}
        n_links = 0
        for spot, local_id, parent_id in entries:
            self.graph.add_node(spot.id, spot=spot)
            current[local_id] = spot
            if parent_id is None:
                continue
            parent = self._previous.get(parent_id)
            if parent is None:
                continue
            if parent.frame != frame - 1:
                problem = OutOfOrderParent(frame, local_id, parent_id, parent.frame)
                logger.debug("%s", problem)
                self.problems.append(problem)
                continue
            self.graph.add_edge(parent.id, spot.id, weight=1.0)
            n_links += 1
        self._previous = current
        return n_links


def label_tracks(graph):
    """
    Assign track ids to the weakly connected components of ``graph``.

    Components are numbered from 0 in ascending order of their smallest
    spot id; isolated spots are singleton tracks.

    Returns
    -------
    track_of : dict
        spot id -> track id
    tracks : dict
        track id -> sorted list of spot ids
    """
    components = sorted((sorted(c) for c in nx.weakly_connected_components(graph)),
                        key=lambda c: c[0])
    tracks = dict(enumerate(components))
    track_of = {sid: tid for tid, members in tracks.items() for sid in members}
    return track_of, tracks


class KeepIntact:
    """Leave division events as they are."""

    policy = SplitPolicy.KEEP_INTACT

    def transform(self, graph):
        return graph.copy()


class UnlinkAllSplits:
    """Remove every outgoing edge of a dividing spot."""

    policy = SplitPolicy.UNLINK_ALL_SPLITS

    def transform(self, graph):
        out = graph.copy()
        removed = 0
        for node in sorted(graph.nodes):
            if graph.out_degree(node) >= 2:
                edges = list(graph.out_edges(node))
                out.remove_edges_from(edges)
                removed += len(edges)
        logger.info("Unlinked all splits: removed %d edges", removed)
        return out


class UnlinkFarthestDaughters:
    """Keep only the link from a dividing spot to its nearest daughter.

    Ties on distance go to the daughter with the smallest spot id.
    """

    policy = SplitPolicy.UNLINK_FARTHEST_DAUGHTERS

    def transform(self, graph):
        out = graph.copy()
        removed = 0
        for node in sorted(graph.nodes):
            daughters = sorted(graph.successors(node))
            if len(daughters) < 2:
                continue
            mother = graph.nodes[node]["spot"]
            keep = min(daughters,
                       key=lambda d: (mother.distance_to(graph.nodes[d]["spot"]), d))
            out.remove_edges_from((node, d) for d in daughters if d != keep)
            removed += len(daughters) - 1
        logger.info("Unlinked farthest daughters: removed %d edges", removed)
        return out


_STRATEGIES = {
    SplitPolicy.KEEP_INTACT: KeepIntact,
    SplitPolicy.UNLINK_ALL_SPLITS: UnlinkAllSplits,
    SplitPolicy.UNLINK_FARTHEST_DAUGHTERS: UnlinkFarthestDaughters,
}


def split_transformer(policy):
    """Return the strategy object for a SplitPolicy (or its string value)."""
    return _STRATEGIES[SplitPolicy(policy)]()


def detect_split_events(model):
    """Tabulate division sites, including links broken by the split policy."""
    children = defaultdict(set)
    for s, t in list(model.graph.edges) + list(model.broken_links):
        children[s].add(t)

    rows = []
    for src in sorted(children):
        child_spots = sorted(children[src])
        if len(child_spots) <= 1:
            continue
        rows.append({
            "split_spot": int(src),
            "frame": int(model.spot(src).frame),
            "parent_track": int(model.track_of[src]),
            "child_spots": child_spots,
            "child_tracks": [int(model.track_of[c]) for c in child_spots],
        })

    return pd.DataFrame(rows, columns=["split_spot", "frame", "parent_track",
                                       "child_spots", "child_tracks"])


def build_track_lineage(model):
    """
    Build the track-level lineage graph of a model.

    Every track is a node. An edge parent_track > child_track is added for
    each division whose daughter ended up in another track, which only
    happens when the split policy broke the division.
    """
    G = nx.DiGraph()
    G.add_nodes_from(sorted(model.tracks))

    splits_df = detect_split_events(model)
    for _, r in splits_df.iterrows():
        for ct in r["child_tracks"]:
            if r["parent_track"] != ct:
                G.add_edge(int(r["parent_track"]), int(ct), reason="split")

    return G
