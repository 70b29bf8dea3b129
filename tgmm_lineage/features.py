"""
Feature analyzers run once over a finished model.

Analyzers only read the model. Each returns ``{key: {feature: value}}``
where key is a spot id, an edge ``(source, target)`` or a track id, and
the caller stores the values in the matching feature cache.
"""

import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np

from .spots import POSITION_T, POSITION_X, POSITION_Y, POSITION_Z

logger = logging.getLogger(__name__)


class SpotAnalyzer:
    KEY = "spot"
    FEATURES = ()

    def compute(self, model):
        raise NotImplementedError


class EdgeAnalyzer:
    KEY = "edge"
    FEATURES = ()

    def compute(self, model):
        raise NotImplementedError


class TrackAnalyzer:
    KEY = "track"
    FEATURES = ()

    def compute(self, model):
        raise NotImplementedError


class SpotTrackAnalyzer(SpotAnalyzer):
    """Track id of each spot."""

    KEY = "Spot track"
    FEATURES = ("TRACK_ID",)

    def compute(self, model):
        return {sid: {"TRACK_ID": float(tid)} for sid, tid in model.track_of.items()}


class EdgeTargetAnalyzer(EdgeAnalyzer):
    KEY = "Edge target"
    FEATURES = ("SPOT_SOURCE_ID", "SPOT_TARGET_ID", "LINK_COST")

    def compute(self, model):
        return {
            (s, t): {
                "SPOT_SOURCE_ID": float(s),
                "SPOT_TARGET_ID": float(t),
                "LINK_COST": float(model.edge_weight(s, t)),
            }
            for s, t in model.edges
        }


class EdgeLocationAnalyzer(EdgeAnalyzer):
    """Edge midpoint in space and time."""

    KEY = "Edge location"
    FEATURES = ("EDGE_TIME", "EDGE_X_LOCATION", "EDGE_Y_LOCATION", "EDGE_Z_LOCATION")

    def compute(self, model):
        out = {}
        for s, t in model.edges:
            a, b = model.spot(s).features, model.spot(t).features
            out[(s, t)] = {
                "EDGE_TIME": 0.5 * (a[POSITION_T] + b[POSITION_T]),
                "EDGE_X_LOCATION": 0.5 * (a[POSITION_X] + b[POSITION_X]),
                "EDGE_Y_LOCATION": 0.5 * (a[POSITION_Y] + b[POSITION_Y]),
                "EDGE_Z_LOCATION": 0.5 * (a[POSITION_Z] + b[POSITION_Z]),
            }
        return out


class EdgeVelocityAnalyzer(EdgeAnalyzer):
    KEY = "Edge velocity"
    FEATURES = ("DISPLACEMENT", "SPEED")

    def compute(self, model):
        out = {}
        for s, t in model.edges:
            a, b = model.spot(s), model.spot(t)
            displacement = a.distance_to(b)
            elapsed = b.features[POSITION_T] - a.features[POSITION_T]
            out[(s, t)] = {
                "DISPLACEMENT": displacement,
                "SPEED": displacement / elapsed if elapsed > 0 else np.nan,
            }
        return out


class TrackIndexAnalyzer(TrackAnalyzer):
    KEY = "Track index"
    FEATURES = ("TRACK_INDEX", "TRACK_ID")

    def compute(self, model):
        return {tid: {"TRACK_INDEX": float(i), "TRACK_ID": float(tid)}
                for i, tid in enumerate(sorted(model.tracks))}


class TrackBranchingAnalyzer(TrackAnalyzer):
    """Spot count and division/merge counts per track."""

    KEY = "Branching analyzer"
    FEATURES = ("NUMBER_SPOTS", "NUMBER_SPLITS", "NUMBER_MERGES", "NUMBER_COMPLEX")

    def compute(self, model):
        G = model.graph
        out = {}
        for tid, members in model.tracks.items():
            splits = sum(1 for sid in members if G.out_degree(sid) > 1)
            merges = sum(1 for sid in members if G.in_degree(sid) > 1)
            complex_ = sum(1 for sid in members if G.out_degree(sid) > 1 and G.in_degree(sid) > 1)
            out[tid] = {
                "NUMBER_SPOTS": float(len(members)),
                "NUMBER_SPLITS": float(splits),
                "NUMBER_MERGES": float(merges),
                "NUMBER_COMPLEX": float(complex_),
            }
        return out


class TrackDurationAnalyzer(TrackAnalyzer):
    """Start, stop, duration and start-to-end displacement of each track."""

    KEY = "Track duration"
    FEATURES = ("TRACK_START", "TRACK_STOP", "TRACK_DURATION", "TRACK_DISPLACEMENT")

    def compute(self, model):
        out = {}
        for tid in model.tracks:
            spots = model.track_spots(tid)
            first = min(spots, key=lambda s: (s.features[POSITION_T], s.id))
            last = max(spots, key=lambda s: (s.features[POSITION_T], -s.id))
            start, stop = first.features[POSITION_T], last.features[POSITION_T]
            out[tid] = {
                "TRACK_START": start,
                "TRACK_STOP": stop,
                "TRACK_DURATION": stop - start,
                "TRACK_DISPLACEMENT": first.distance_to(last),
            }
        return out


class TrackSpeedAnalyzer(TrackAnalyzer):
    """Statistics of the link speeds of each track; NaN for tracks without links."""

    KEY = "Track speed"
    FEATURES = ("TRACK_MEAN_SPEED", "TRACK_MAX_SPEED", "TRACK_MIN_SPEED",
                "TRACK_MEDIAN_SPEED", "TRACK_STD_SPEED")

    def compute(self, model):
        out = {}
        for tid in model.tracks:
            speeds = []
            for s, t in model.track_edges(tid):
                a, b = model.spot(s), model.spot(t)
                elapsed = b.features[POSITION_T] - a.features[POSITION_T]
                if elapsed > 0:
                    speeds.append(a.distance_to(b) / elapsed)
            speeds = np.asarray(speeds, dtype=float)
            if speeds.size:
                stats = (speeds.mean(), speeds.max(), speeds.min(),
                         np.median(speeds), speeds.std())
            else:
                stats = (np.nan,) * 5
            out[tid] = {name: float(v) for name, v in zip(self.FEATURES, stats)}
        return out


@dataclass
class FeatureAnalyzers:
    """Ordered analyzer lists, run spot first, then edge, then track."""

    spot: List[SpotAnalyzer] = field(default_factory=list)
    edge: List[EdgeAnalyzer] = field(default_factory=list)
    track: List[TrackAnalyzer] = field(default_factory=list)

    def __len__(self):
        return len(self.spot) + len(self.edge) + len(self.track)


def default_analyzers():
    """Analyzers for every feature that can be computed without image data."""
    return FeatureAnalyzers(
        spot=[SpotTrackAnalyzer()],
        edge=[EdgeTargetAnalyzer(), EdgeLocationAnalyzer(), EdgeVelocityAnalyzer()],
        track=[TrackIndexAnalyzer(), TrackBranchingAnalyzer(),
               TrackDurationAnalyzer(), TrackSpeedAnalyzer()],
    )


def compute_features(model, analyzers):
    """Run every analyzer once, sequentially, and store its values on ``model``."""
    for analyzer in analyzers.spot:
        for sid, values in analyzer.compute(model).items():
            model.spot(sid).features.update(values)
        logger.debug("Computed spot features %s", ", ".join(analyzer.FEATURES))

    for analyzer in analyzers.edge:
        for edge, values in analyzer.compute(model).items():
            model.edge_features[edge].update(values)
        logger.debug("Computed edge features %s", ", ".join(analyzer.FEATURES))

    for analyzer in analyzers.track:
        for tid, values in analyzer.compute(model).items():
            model.track_features[tid].update(values)
        logger.debug("Computed track features %s", ", ".join(analyzer.FEATURES))
