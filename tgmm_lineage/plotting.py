import matplotlib.pyplot as plt
import networkx as nx
import pandas as pd

from .lineage import build_track_lineage


def plot_tracks(model, ax=None, figsize=(6, 6), show_labels=False, axes=("POSITION_X", "POSITION_Y")):
    """
    Plot imported spots and their links, coloured by track.

    Only actual links are drawn: spots of a track broken by the split
    policy are not joined to their mother.
    """
    xcol, ycol = axes
    spots_df = model.spots_dataframe()
    edges_df = model.edges_dataframe()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    cmap = plt.get_cmap("tab20")
    track_colors = {tid: cmap(i % cmap.N) for i, tid in enumerate(sorted(model.tracks))}

    for tid, df in spots_df.groupby("track_id", sort=True):
        color = track_colors[tid]
        ax.scatter(df[xcol], df[ycol], s=10, color=color, alpha=0.9)
        if show_labels:
            first = df.sort_values("frame").iloc[0]
            ax.text(first[xcol], first[ycol], str(tid), fontsize=7, color=color)

    if not edges_df.empty:
        spot_lookup = spots_df.set_index("spot_id")[[xcol, ycol, "track_id"]]
        for s, t in edges_df[["source", "target"]].itertuples(index=False):
            xs, ys = spot_lookup.loc[s, [xcol, ycol]]
            xt, yt = spot_lookup.loc[t, [xcol, ycol]]
            color = track_colors[spot_lookup.loc[s, "track_id"]]
            ax.plot([xs, xt], [ys, yt], color=color, linewidth=1, alpha=0.6, zorder=0)

    ax.set_xlabel(xcol)
    ax.set_ylabel(ycol)
    ax.set_title(f"Tracks ({xcol[-1]}{ycol[-1]})")
    ax.set_aspect("equal", adjustable="box")
    plt.tight_layout()
    return fig, ax


def plot_track_features(model, track_id, features, aggregate="mean"):
    """
    Plot spot features over time for a track and the tracks descending from it.

    Descendants come from the track lineage graph, so they only exist
    when the split policy broke divisions.
    """
    if track_id not in model.tracks:
        raise KeyError(f"No track {track_id} in model")
    if isinstance(features, str):
        features = [features]

    lineage = build_track_lineage(model)
    tracks = [track_id]
    if track_id in lineage.nodes:
        tracks.extend(sorted(nx.descendants(lineage, track_id)))

    spots_df = model.spots_dataframe()
    time_index = pd.Index(range(int(spots_df["frame"].min()), int(spots_df["frame"].max()) + 1),
                          name="frame")

    fig, axs = plt.subplots(len(features), 1, sharex=True, figsize=(8, 3 * len(features)))
    if len(features) == 1:
        axs = [axs]

    cmap = plt.get_cmap("tab10")
    for ax, feat in zip(axs, features):
        if feat not in spots_df.columns:
            ax.text(0.5, 0.5, f"Feature '{feat}' not found",
                    ha="center", va="center", transform=ax.transAxes)
            continue

        for i, tid in enumerate(tracks):
            grp = spots_df[spots_df["track_id"] == tid]
            by_frame = grp.groupby("frame")[feat]
            series = (by_frame.mean() if aggregate == "mean" else by_frame.median()).reindex(time_index)
            ax.plot(series.index, series.values, marker="o",
                    label=f"Track {tid}", color=cmap(i % cmap.N))

        ax.set_ylabel(feat)
        ax.legend(fontsize="small")
        ax.grid(True, linestyle="--", alpha=0.3)

    axs[-1].set_xlabel("Frame")
    plt.tight_layout()
    return fig, axs
