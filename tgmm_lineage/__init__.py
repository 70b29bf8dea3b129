"""
tgmm_lineage
------------
Import TGMM (Gaussian-mixture tracking) results as a TrackMate-style
lineage model.

Modules:
    config.py      - Import settings, crop interval, split policies
    transforms.py  - Affine transforms and per-frame transform lookup
    io.py          - TGMM frame documents and BigDataViewer XML readers
    spots.py       - Spot building and space-time cropping
    lineage.py     - Frame-to-frame linking, split breaking, track labels
    model.py       - The imported model and its assembly
    features.py    - Spot, edge and track feature analyzers
    importer.py    - The import driver
    batch.py       - TSV export of an imported model
    plotting.py    - Quick-look figures of imported tracks
"""

from .config import DEFAULT_PATTERN, ImportSettings, Interval, SplitPolicy
from .errors import (DatasetError, DegenerateRecord, FrameParseError, ImportCancelled,
                     ImportIssue, MissingFrame, MissingRegistration, OutOfOrderParent,
                     TGMMImportError, UnreadableFolder)
from .features import FeatureAnalyzers, default_analyzers
from .importer import import_tgmm
from .io import load_dataset_descriptor, parse_frame_document
from .log import ImportLogger
from .model import Model
from .transforms import AffineTransform3D, DatasetDescriptor, TransformProvider

__version__ = "1.0.0"
