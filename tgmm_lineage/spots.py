"""Spots: building them from Gaussian records and cropping them in space-time."""

import itertools
import logging
from dataclasses import dataclass, field

import numpy as np
from scipy import linalg

from .errors import DegenerateRecord

logger = logging.getLogger(__name__)

POSITION_X = "POSITION_X"
POSITION_Y = "POSITION_Y"
POSITION_Z = "POSITION_Z"
POSITION_T = "POSITION_T"
RADIUS = "RADIUS"
FRAME = "FRAME"
QUALITY = "QUALITY"
VISIBILITY = "VISIBILITY"

SPOT_FEATURES = (POSITION_X, POSITION_Y, POSITION_Z, POSITION_T,
                 FRAME, RADIUS, QUALITY, VISIBILITY)


@dataclass
class Spot:
    """A detection in world coordinates."""

    id: int
    frame: int
    x: float
    y: float
    z: float
    radius: float
    features: dict = field(default_factory=dict)

    @property
    def position(self):
        return np.array([self.x, self.y, self.z])

    def feature(self, key):
        return self.features.get(key)

    def distance_to(self, other):
        return float(np.linalg.norm(self.position - other.position))


def gaussian_radius(precision, nu):
    """Geometric mean of the standard deviations of covariance ``W^-1 / nu``."""
    covariance = linalg.inv(precision) / nu
    variances = linalg.eigvalsh(covariance)
    if np.any(variances <= 0):
        raise ValueError(f"covariance has non-positive variances {variances}")
    return float(np.prod(np.sqrt(variances)) ** (1.0 / 3.0))


class SpotBuilder:
    """Turn Gaussian records into spots, handing out import-wide spot ids.

    Ids increase by one per built spot, in the order ``build`` is called.
    """

    def __init__(self, first_id=0):
        self._ids = itertools.count(first_id)

    def build(self, record, transform, frame, path=None):
        """
        Build a spot from ``record`` seen through ``transform`` at ``frame``.

        Raises
        ------
        DegenerateRecord
            If the radius comes out non-positive or non-finite.
        """
        x, y, z = transform.apply(record.mean)
        try:
            radius = gaussian_radius(record.precision, record.nu) * transform.isotropic_scale()
        except (ValueError, linalg.LinAlgError) as e:
            raise DegenerateRecord(str(e), path=path, record_id=record.local_id) from e
        if not np.isfinite(radius) or radius <= 0:
            raise DegenerateRecord(f"unusable radius {radius}", path=path, record_id=record.local_id)

        quality = record.split_score if record.split_score is not None else 1.0
        spot = Spot(
            id=next(self._ids),
            frame=frame,
            x=float(x), y=float(y), z=float(z),
            radius=radius,
            features={
                POSITION_X: float(x),
                POSITION_Y: float(y),
                POSITION_Z: float(z),
                RADIUS: radius,
                FRAME: float(frame),
                QUALITY: float(quality),
                VISIBILITY: 1.0,
            },
        )
        return spot


class IntervalFilter:
    """Keep spots inside an optional box and an optional inclusive frame range."""

    def __init__(self, interval=None, time_range=None):
        self.interval = interval
        self.time_range = time_range

    def keeps_frame(self, frame):
        if self.time_range is None:
            return True
        t_from, t_to = self.time_range
        return t_from <= frame <= t_to

    def keeps(self, spot):
        if not self.keeps_frame(spot.frame):
            return False
        return self.interval is None or self.interval.contains(spot.x, spot.y, spot.z)

    def apply(self, spots):
        return [s for s in spots if self.keeps(s)]
