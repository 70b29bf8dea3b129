import logging
import os

from .importer import import_tgmm

logger = logging.getLogger(__name__)


def export_model(model, out_root):
    """
    Write the spot, edge and track tables of a model to TSV files.

    Returns a dict mapping table name to the written path.
    """
    os.makedirs(out_root, exist_ok=True)
    tables = {
        "spots": model.spots_dataframe(),
        "edges": model.edges_dataframe(),
        "tracks": model.tracks_dataframe().reset_index(),
    }
    paths = {}
    for name, df in tables.items():
        path = os.path.join(out_root, f"{name}.tsv")
        df.to_csv(path, sep="\t", index=False)
        paths[name] = path
        logger.info("Saved %d %s to %s", len(df), name, path)
    return paths


def import_and_export(folder, dataset, out_root, settings=None, import_logger=None):
    """Import a TGMM folder and export the resulting tables to ``out_root``."""
    model = import_tgmm(folder, dataset, settings=settings, logger=import_logger)
    paths = export_model(model, out_root)
    return model, paths
