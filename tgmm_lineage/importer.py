"""Import driver: TGMM folder + image dataset -> lineage Model."""

import logging
import os

from .config import ImportSettings
from .errors import (DatasetError, DegenerateRecord, FrameParseError,
                     ImportCancelled, MissingFrame, MissingRegistration,
                     UnreadableFolder)
from .features import default_analyzers
from .io import frame_path, load_dataset_descriptor, parse_frame_document
from .lineage import LineageLinker, split_transformer
from .log import ImportLogger
from .model import ImportReport, Model, assemble_model
from .spots import IntervalFilter, SpotBuilder
from .transforms import DatasetDescriptor, TransformProvider

_log = logging.getLogger(__name__)


def _check_folder(folder):
    if not os.path.isdir(folder):
        raise UnreadableFolder(f"TGMM folder {folder} does not exist or is not a directory")
    try:
        os.listdir(folder)
    except OSError as e:
        raise UnreadableFolder(f"Cannot read TGMM folder {folder}: {e}") from e


def _transform_provider(dataset):
    if isinstance(dataset, TransformProvider):
        return dataset
    if isinstance(dataset, DatasetDescriptor):
        return TransformProvider.from_descriptor(dataset)
    return TransformProvider.from_descriptor(load_dataset_descriptor(dataset))


def frame_range(time_range, n_frames):
    """Frames to import: ``time_range`` clamped to the dataset, or all of them."""
    if time_range is None:
        return list(range(n_frames))
    t_from, t_to = time_range
    return list(range(max(t_from, 0), min(t_to, n_frames - 1) + 1))


def _cancelled(cancel):
    return cancel is not None and cancel.is_set()


def _read_frame(path, t, transform, builder, crop, warn):
    """
    Parse, build and crop one frame.

    Returns the kept ``(spot, local_id, parent_id)`` entries, or None when
    the frame document is missing or unreadable.
    """
    if not os.path.isfile(path):
        warn(MissingFrame(t, path))
        return None
    try:
        records, problems = parse_frame_document(path)
    except FrameParseError as e:
        warn(e)
        return None
    for problem in problems:
        warn(problem)

    entries = []
    for record in records:
        try:
            spot = builder.build(record, transform, t, path=path)
        except DegenerateRecord as e:
            warn(e)
            continue
        if crop.keeps(spot):
            entries.append((spot, record.local_id, record.parent))
    return entries


def import_tgmm(folder, dataset, settings=None, logger=None, analyzers=None, cancel=None):
    """
    Import a folder of TGMM frame documents as a lineage model.

    Parameters
    ----------
    folder : str
        Folder holding one TGMM document per frame, named by
        ``settings.pattern``.
    dataset : DatasetDescriptor, TransformProvider or str
        Source of the per-frame local-to-world transforms; a string is read
        as a BigDataViewer XML file.
    settings : ImportSettings, optional
        View setup, crop, split policy, dt and file pattern.
    logger : ImportLogger, optional
        Receives messages, warnings and progress.
    analyzers : FeatureAnalyzers, optional
        Feature analyzers run on the finished model. Defaults to
        ``default_analyzers()``.
    cancel : threading.Event, optional
        Polled at every frame boundary.

    Returns
    -------
    model : Model

    Raises
    ------
    UnreadableFolder, DatasetError, MissingRegistration
        Fatal input problems, raised before any frame is read.
    ImportCancelled
        If ``cancel`` was set.
    """
    settings = settings if settings is not None else ImportSettings()
    log = logger if logger is not None else ImportLogger()
    analyzers = analyzers if analyzers is not None else default_analyzers()

    try:
        _check_folder(folder)
        provider = _transform_provider(dataset)
        frames = frame_range(settings.time_range, provider.n_frames)
        transforms = provider.transforms_for(settings.view_setup_id, frames)
    except (UnreadableFolder, DatasetError, MissingRegistration) as e:
        log.error("%s", e)
        raise
    report = ImportReport()

    if not frames:
        log.log("No frame to import in time range %s", settings.time_range)
        return Model.empty(dt=settings.dt, report=report)
    if settings.time_range is not None and (frames[0], frames[-1]) != tuple(settings.time_range):
        log.log("Time range %s clamped to frames %d-%d of the dataset",
                settings.time_range, frames[0], frames[-1])

    builder = SpotBuilder()
    crop = IntervalFilter(settings.interval, settings.time_range)
    linker = LineageLinker()
    spots = []

    def warn(problem):
        report.add(problem)
        log.warning("%s", problem)

    log.log("Importing %d frames from %s", len(frames), folder)
    for i, t in enumerate(frames):
        if _cancelled(cancel):
            raise ImportCancelled(f"Import cancelled before frame {t}")

        report.n_frames += 1
        path = frame_path(folder, settings.pattern, t)
        entries = _read_frame(path, t, transforms[t], builder, crop, warn)
        if entries is None:
            # an unreadable frame is an empty generation: no parent spans it
            linker.add_frame(t, [])
        else:
            spots.extend(spot for spot, _, _ in entries)
            n_before = len(linker.problems)
            n_links = linker.add_frame(t, entries)
            for problem in linker.problems[n_before:]:
                warn(problem)
            _log.debug("Frame %d: %d spots kept, %d links", t, len(entries), n_links)
        log.progress((i + 1) / len(frames))

    if _cancelled(cancel):
        raise ImportCancelled("Import cancelled before linking")

    strategy = split_transformer(settings.split_policy)
    graph = strategy.transform(linker.graph)
    broken_links = set(linker.graph.edges) - set(graph.edges)

    model = assemble_model(spots, graph, dt=settings.dt, analyzers=analyzers,
                           broken_links=broken_links, report=report)
    log.log("%s", report.summary(model.n_spots))
    return model
