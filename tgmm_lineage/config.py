"""Import settings.

All knobs of an import are explicit and validated here; nothing in the
pipeline reads module-level defaults.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PATTERN = "GMEMfinalResult_frame%04d.xml"

# A printf conversion, or an escaped "%%".
_CONVERSION = re.compile(r"%(%|[-#0 +]*\d*(?:\.\d+)?([a-zA-Z]))")


class SettingsModel(BaseModel):
    """Base for settings models: no unknown fields, immutable once built."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )


class SplitPolicy(str, Enum):
    """What to do with division events after linking."""

    KEEP_INTACT = "keep_intact"
    UNLINK_FARTHEST_DAUGHTERS = "unlink_farthest_daughters"
    UNLINK_ALL_SPLITS = "unlink_all_splits"


class Interval(SettingsModel):
    """World-space axis-aligned box, bounds inclusive.

    A box whose min exceeds its max on some axis is empty and contains
    nothing; intersections of disjoint boxes are represented that way.
    """

    x_min: float
    y_min: float
    z_min: float
    x_max: float
    y_max: float
    z_max: float

    @classmethod
    def from_bounds(cls, x_min, y_min, z_min, x_max, y_max, z_max):
        return cls(x_min=x_min, y_min=y_min, z_min=z_min,
                   x_max=x_max, y_max=y_max, z_max=z_max)

    @property
    def min(self):
        return (self.x_min, self.y_min, self.z_min)

    @property
    def max(self):
        return (self.x_max, self.y_max, self.z_max)

    @property
    def is_empty(self):
        return any(lo > hi for lo, hi in zip(self.min, self.max))

    def contains(self, x, y, z):
        return (self.x_min <= x <= self.x_max
                and self.y_min <= y <= self.y_max
                and self.z_min <= z <= self.z_max)

    def intersect(self, other):
        """Return the box covered by both ``self`` and ``other``."""
        return Interval(
            x_min=max(self.x_min, other.x_min),
            y_min=max(self.y_min, other.y_min),
            z_min=max(self.z_min, other.z_min),
            x_max=min(self.x_max, other.x_max),
            y_max=min(self.y_max, other.y_max),
            z_max=min(self.z_max, other.z_max),
        )


class ImportSettings(SettingsModel):
    """Everything an import needs besides its inputs."""

    view_setup_id: int = Field(0, ge=0, description="View whose transforms are applied")
    interval: Optional[Interval] = None
    time_range: Optional[tuple[int, int]] = Field(
        None, description="Inclusive (t_from, t_to); t_from > t_to imports nothing"
    )
    split_policy: SplitPolicy = SplitPolicy.KEEP_INTACT
    dt: float = Field(1.0, gt=0, description="Duration of one frame, seeds POSITION_T")
    pattern: str = Field(DEFAULT_PATTERN, description="printf-style frame file name")

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, v):
        conversions = [conv for full, conv in _CONVERSION.findall(v) if full != "%"]
        if conversions not in (["d"], ["i"]):
            raise ValueError(
                f"pattern must contain exactly one integer substitution such as %04d, "
                f"found {len(conversions)} substitutions in {v!r}"
            )
        try:
            v % 0
        except (TypeError, ValueError) as e:
            raise ValueError(f"pattern {v!r} cannot be formatted with a frame number: {e}") from None
        return v

    @field_validator("interval", mode="before")
    @classmethod
    def coerce_interval(cls, v):
        """Accept the six bounds as a flat sequence."""
        if isinstance(v, (list, tuple)):
            if len(v) != 6:
                raise ValueError("interval needs six bounds: x_min, y_min, z_min, x_max, y_max, z_max")
            return Interval.from_bounds(*v)
        return v

