import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd
import pytest

from tgmm_lineage.batch import export_model, import_and_export
from tgmm_lineage.config import ImportSettings, SplitPolicy
from tgmm_lineage.importer import import_tgmm
from tgmm_lineage.plotting import plot_track_features, plot_tracks


@pytest.fixture
def division_folder(tgmm_folder, write_frame):
    write_frame(0, [{"id": 1, "m": (0, 0, 0)}])
    write_frame(1, [{"id": 1, "m": (1, 0, 0), "parent": 1},
                    {"id": 2, "m": (0, 3, 0), "parent": 1}])
    write_frame(2, [{"id": 1, "m": (2, 0, 0), "parent": 1},
                    {"id": 2, "m": (0, 4, 0), "parent": 2}])
    return tgmm_folder


def test_export_model_writes_tables(division_folder, make_provider, tmp_path):
    model = import_tgmm(str(division_folder), make_provider(3))
    paths = export_model(model, str(tmp_path / "out"))

    spots = pd.read_csv(paths["spots"], sep="\t")
    edges = pd.read_csv(paths["edges"], sep="\t")
    tracks = pd.read_csv(paths["tracks"], sep="\t")

    assert len(spots) == 5
    assert {"spot_id", "frame", "track_id", "POSITION_X", "RADIUS", "POSITION_T"} <= set(spots.columns)
    assert len(edges) == 4
    assert {"source", "target", "SPEED"} <= set(edges.columns)
    assert list(tracks["track_id"]) == [0]
    assert tracks.loc[0, "NUMBER_SPLITS"] == 1


def test_import_and_export(division_folder, make_provider, tmp_path):
    settings = ImportSettings(split_policy=SplitPolicy.UNLINK_ALL_SPLITS)
    model, paths = import_and_export(str(division_folder), make_provider(3),
                                     str(tmp_path / "out"), settings=settings)
    assert model.n_tracks == 3
    assert len(pd.read_csv(paths["tracks"], sep="\t")) == 3


def test_plot_tracks(division_folder, make_provider):
    model = import_tgmm(str(division_folder), make_provider(3))
    fig, ax = plot_tracks(model, show_labels=True)
    assert len(ax.lines) == model.n_edges
    plt.close(fig)


def test_plot_track_features_follows_descendants(division_folder, make_provider):
    settings = ImportSettings(split_policy=SplitPolicy.UNLINK_ALL_SPLITS)
    model = import_tgmm(str(division_folder), make_provider(3), settings=settings)

    fig, axs = plot_track_features(model, 0, ["POSITION_X", "MISSING"])
    # the mother track plus its two daughter tracks
    assert len(axs[0].lines) == 3
    assert len(axs[1].texts) == 1
    plt.close(fig)

    with pytest.raises(KeyError):
        plot_track_features(model, 42, "POSITION_X")
