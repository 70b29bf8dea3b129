"""Exceptions raised or collected while importing TGMM results."""


class TGMMImportError(Exception):
    """Base class for every problem the importer knows about."""


# Fatal: raised out of import_tgmm, nothing is returned.

class UnreadableFolder(TGMMImportError):
    """The TGMM folder does not exist, is not a directory or cannot be listed."""


class DatasetError(TGMMImportError):
    """The image dataset descriptor could not be read."""


class MissingRegistration(TGMMImportError):
    """No registration for a (timepoint, view setup) pair."""

    def __init__(self, view_setup_id, frame, timepoint=None):
        self.view_setup_id = view_setup_id
        self.frame = frame
        self.timepoint = timepoint
        where = f"frame {frame}" if timepoint is None else f"frame {frame} (timepoint {timepoint})"
        super().__init__(f"No registration for view setup {view_setup_id} at {where}")


class ImportCancelled(TGMMImportError):
    """The caller cancelled the import."""


# Non-fatal: logged, counted in the import report.

class ImportIssue(TGMMImportError):
    """A problem that drops some input but lets the import go on."""

    kind = "warning"


class MissingFrame(ImportIssue):
    kind = "missing-frame"

    def __init__(self, frame, path):
        self.frame = frame
        self.path = path
        super().__init__(f"No TGMM document for frame {frame}: {path}")


class FrameParseError(ImportIssue):
    """Malformed document, or a record with a missing or invalid field."""

    kind = "parse"

    def __init__(self, message, path=None, position=None, record_id=None):
        self.path = path
        self.position = position
        self.record_id = record_id
        where = str(path) if path is not None else "<unknown>"
        if position is not None:
            where += f" line {position[0]}, column {position[1]}"
        if record_id is not None:
            where += f" record {record_id}"
        super().__init__(f"{where}: {message}")


class DegenerateRecord(ImportIssue):
    """Precision matrix is not positive-definite, or the spot shape is unusable."""

    kind = "degenerate"

    def __init__(self, message, path=None, record_id=None):
        self.path = path
        self.record_id = record_id
        super().__init__(f"{path}: record {record_id}: {message}")


class OutOfOrderParent(ImportIssue):
    kind = "out-of-order"

    def __init__(self, frame, local_id, parent_id, parent_frame):
        self.frame = frame
        self.local_id = local_id
        self.parent_id = parent_id
        self.parent_frame = parent_frame
        super().__init__(
            f"Record {local_id} of frame {frame} names parent {parent_id} "
            f"resolved in frame {parent_frame}, expected frame {frame - 1}; link dropped"
        )
