import math

import networkx as nx
import pytest

from tgmm_lineage.features import (EdgeVelocityAnalyzer, FeatureAnalyzers, SpotAnalyzer,
                                   TrackBranchingAnalyzer, TrackDurationAnalyzer,
                                   TrackSpeedAnalyzer, default_analyzers)
from tgmm_lineage.lineage import build_track_lineage, detect_split_events
from tgmm_lineage.model import ImportReport, Model, SpotCollection, assemble_model
from tgmm_lineage.errors import MissingFrame
from tgmm_lineage.spots import POSITION_T, Spot


def make_spot(spot_id, frame, x=0.0, y=0.0, z=0.0):
    return Spot(id=spot_id, frame=frame, x=x, y=y, z=z, radius=1.0,
                features={"POSITION_X": x, "POSITION_Y": y, "POSITION_Z": z, "FRAME": float(frame)})


def graph_of(spots, edges):
    G = nx.DiGraph()
    for s in spots:
        G.add_node(s.id, spot=s)
    G.add_edges_from(edges, weight=1.0)
    return G


@pytest.fixture
def dividing_spots():
    # 0 -> 1 -> 3 and 1 -> 4 (division at frame 1); 2 isolated
    return [
        make_spot(0, 0),
        make_spot(1, 1, x=3.0),
        make_spot(2, 1, x=50.0),
        make_spot(3, 2, x=3.0, y=4.0),
        make_spot(4, 2, x=9.0),
    ]


def test_spot_collection_keyed_by_frame(dividing_spots):
    collection = SpotCollection(reversed(dividing_spots))
    assert collection.frames() == [0, 1, 2]
    assert [s.id for s in collection.in_frame(1)] == [1, 2]
    assert [s.id for s in collection] == [0, 1, 2, 3, 4]
    assert len(collection) == 5
    with pytest.raises(ValueError):
        collection.add(make_spot(0, 0))


def test_assemble_seeds_time_and_tracks(dividing_spots):
    G = graph_of(dividing_spots, [(0, 1), (1, 3), (1, 4)])
    model = assemble_model(dividing_spots, G, dt=2.5)

    for spot in model.spots:
        assert spot.features[POSITION_T] == spot.frame * 2.5
    assert model.tracks == {0: [0, 1, 3, 4], 1: [2]}
    assert model.n_edges == 3
    assert model.edge_weight(1, 3) == 1.0


def test_assembled_graph_is_frozen(dividing_spots):
    model = assemble_model(dividing_spots, graph_of(dividing_spots, [(0, 1)]))
    with pytest.raises(nx.NetworkXError):
        model.graph.add_edge(1, 3)


def test_assemble_rejects_edges_skipping_frames(dividing_spots):
    with pytest.raises(ValueError):
        assemble_model(dividing_spots, graph_of(dividing_spots, [(0, 3)]))


def test_default_analyzers_fill_caches(dividing_spots):
    G = graph_of(dividing_spots, [(0, 1), (1, 3), (1, 4)])
    model = assemble_model(dividing_spots, G, analyzers=default_analyzers())

    assert model.spot(2).features["TRACK_ID"] == 1.0
    edge = model.edge_features[(1, 3)]
    assert edge["SPOT_SOURCE_ID"] == 1.0
    assert edge["SPOT_TARGET_ID"] == 3.0
    assert edge["DISPLACEMENT"] == pytest.approx(4.0)
    assert edge["SPEED"] == pytest.approx(4.0)
    assert edge["EDGE_TIME"] == pytest.approx(1.5)

    track = model.track_features[0]
    assert track["NUMBER_SPOTS"] == 4
    assert track["NUMBER_SPLITS"] == 1
    assert track["NUMBER_MERGES"] == 0
    assert track["TRACK_START"] == 0
    assert track["TRACK_STOP"] == 2
    assert track["TRACK_DURATION"] == 2
    assert track["TRACK_MAX_SPEED"] == pytest.approx(6.0)
    assert track["TRACK_MIN_SPEED"] == pytest.approx(3.0)

    singleton = model.track_features[1]
    assert singleton["TRACK_DURATION"] == 0
    assert singleton["TRACK_DISPLACEMENT"] == 0
    assert math.isnan(singleton["TRACK_MEAN_SPEED"])


def test_analyzers_run_once_in_order(dividing_spots):
    calls = []

    class Recorder(SpotAnalyzer):
        FEATURES = ("SEEN",)

        def __init__(self, name):
            self.name = name

        def compute(self, model):
            calls.append(self.name)
            assert isinstance(model, Model)
            return {sid: {"SEEN": 1.0} for sid in model.track_of}

    analyzers = FeatureAnalyzers(spot=[Recorder("a"), Recorder("b")])
    model = assemble_model(dividing_spots, graph_of(dividing_spots, []), analyzers=analyzers)
    assert calls == ["a", "b"]
    assert all(s.features["SEEN"] == 1.0 for s in model.spots)


def test_speed_uses_dt(dividing_spots):
    G = graph_of(dividing_spots, [(0, 1)])
    analyzers = FeatureAnalyzers(edge=[EdgeVelocityAnalyzer()],
                                 track=[TrackSpeedAnalyzer(), TrackDurationAnalyzer(),
                                        TrackBranchingAnalyzer()])
    model = assemble_model(dividing_spots, G, dt=0.5, analyzers=analyzers)
    assert model.edge_features[(0, 1)]["SPEED"] == pytest.approx(6.0)
    assert model.track_features[0]["TRACK_DURATION"] == pytest.approx(0.5)


def test_dataframes(dividing_spots):
    G = graph_of(dividing_spots, [(0, 1), (1, 3), (1, 4)])
    model = assemble_model(dividing_spots, G, analyzers=default_analyzers())

    spots_df = model.spots_dataframe()
    assert list(spots_df["spot_id"]) == [0, 1, 2, 3, 4]
    assert list(spots_df["track_id"]) == [0, 0, 1, 0, 0]
    assert "TRACK_ID" in spots_df.columns

    edges_df = model.edges_dataframe()
    assert list(zip(edges_df["source"], edges_df["target"])) == [(0, 1), (1, 3), (1, 4)]

    tracks_df = model.tracks_dataframe()
    assert list(tracks_df.index) == [0, 1]
    assert tracks_df.loc[0, "NUMBER_SPLITS"] == 1


def test_empty_model_dataframes():
    model = Model.empty()
    assert model.n_spots == 0
    assert model.spots_dataframe().empty
    assert model.edges_dataframe().empty
    assert model.tracks_dataframe().empty


def test_split_events_and_track_lineage(dividing_spots):
    # links 1->3 and 1->4 were broken by the split policy
    G = graph_of(dividing_spots, [(0, 1)])
    model = assemble_model(dividing_spots, G, broken_links=[(1, 3), (1, 4)])

    splits = detect_split_events(model)
    assert list(splits["split_spot"]) == [1]
    assert splits.loc[0, "child_spots"] == [3, 4]
    assert splits.loc[0, "child_tracks"] == [2, 3]

    lineage = build_track_lineage(model)
    assert sorted(lineage.nodes) == [0, 1, 2, 3]
    assert sorted(lineage.edges) == [(0, 2), (0, 3)]


def test_report_summary():
    report = ImportReport()
    report.n_frames = 3
    report.add(MissingFrame(1, "frame1.xml"))
    assert report.summary(5) == (
        "imported 5 spots over 3 frames; 1 warnings "
        "(0 parse, 1 missing-frame, 0 degenerate, 0 out-of-order)"
    )
