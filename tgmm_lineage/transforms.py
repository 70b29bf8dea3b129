"""Affine transforms and the per-frame transform lookup."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import MissingRegistration

logger = logging.getLogger(__name__)


class AffineTransform3D:
    """3D affine transform stored as a 3x4 matrix ``[linear | translation]``."""

    def __init__(self, matrix=None):
        if matrix is None:
            matrix = np.hstack([np.eye(3), np.zeros((3, 1))])
        matrix = np.array(matrix, dtype=float)
        if matrix.shape == (4, 4):
            matrix = matrix[:3]
        if matrix.shape != (3, 4):
            raise ValueError(f"Affine transform needs a 3x4 matrix, got shape {matrix.shape}")
        matrix.setflags(write=False)
        self._matrix = matrix

    @classmethod
    def identity(cls):
        return cls()

    @classmethod
    def from_row_packed(cls, values):
        """Build from 12 values in row-major order, as BigDataViewer stores them."""
        values = [float(v) for v in values]
        if len(values) != 12:
            raise ValueError(f"Expected 12 row-packed values, got {len(values)}")
        return cls(np.reshape(values, (3, 4)))

    @classmethod
    def scaling(cls, s, translation=(0.0, 0.0, 0.0)):
        scale = np.broadcast_to(np.asarray(s, dtype=float), (3,))
        return cls(np.hstack([np.diag(scale), np.reshape(translation, (3, 1))]))

    @property
    def matrix(self):
        return self._matrix

    @property
    def linear(self):
        return self._matrix[:, :3]

    @property
    def translation(self):
        return self._matrix[:, 3]

    def row_packed(self):
        return self._matrix.ravel().tolist()

    def apply(self, point):
        """Map a local point to world coordinates."""
        return self.linear @ np.asarray(point, dtype=float) + self.translation

    def _homogeneous(self):
        return np.vstack([self._matrix, [0.0, 0.0, 0.0, 1.0]])

    def concatenate(self, other):
        """Return ``self * other``: ``other`` is applied first."""
        return AffineTransform3D(self._homogeneous() @ other._homogeneous())

    def isotropic_scale(self):
        """Cube root of |det| of the linear part."""
        return float(np.cbrt(abs(np.linalg.det(self.linear))))

    def __eq__(self, other):
        if not isinstance(other, AffineTransform3D):
            return NotImplemented
        return np.array_equal(self._matrix, other._matrix)

    def __hash__(self):
        return hash(self._matrix.tobytes())

    def __repr__(self):
        return f"AffineTransform3D({self.row_packed()})"


@dataclass(frozen=True)
class ViewSetup:
    id: int
    name: Optional[str] = None
    angle: Optional[str] = None


@dataclass
class DatasetDescriptor:
    """Read-only view of an image dataset: setups, timepoints, registrations.

    ``registrations`` maps ``(timepoint_id, view_setup_id)`` to the
    local-to-world transform of that view.
    """

    view_setups: List[ViewSetup]
    timepoints: List[int]
    registrations: Dict[Tuple[int, int], AffineTransform3D] = field(default_factory=dict)

    def view_setup_ids(self):
        return [s.id for s in self.view_setups]

    def view_setup_labels(self):
        """One "angle <name>" label per view setup, in setup order."""
        return [f"angle {s.angle if s.angle is not None else i}"
                for i, s in enumerate(self.view_setups)]


class TransformProvider:
    """Resolve the affine transform of a view at a frame.

    Frames are positions in the ordered timepoint list; the registration
    table is keyed by timepoint id.
    """

    def __init__(self, timepoints, registrations):
        self.timepoints = list(timepoints)
        self._registrations = dict(registrations)

    @classmethod
    def from_descriptor(cls, descriptor):
        return cls(descriptor.timepoints, descriptor.registrations)

    @property
    def n_frames(self):
        return len(self.timepoints)

    def transform_for(self, view_setup_id, t):
        if not 0 <= t < len(self.timepoints):
            raise MissingRegistration(view_setup_id, t)
        timepoint = self.timepoints[t]
        try:
            return self._registrations[(timepoint, view_setup_id)]
        except KeyError:
            raise MissingRegistration(view_setup_id, t, timepoint) from None

    def transforms_for(self, view_setup_id, frames):
        """Resolve every frame up front, failing on the first missing one."""
        transforms = {t: self.transform_for(view_setup_id, t) for t in frames}
        logger.debug("Resolved %d transforms for view setup %d", len(transforms), view_setup_id)
        return transforms
