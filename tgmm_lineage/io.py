"""Readers for TGMM frame documents and BigDataViewer dataset descriptors."""

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import linalg

from .errors import DatasetError, DegenerateRecord, FrameParseError
from .transforms import AffineTransform3D, DatasetDescriptor, ViewSetup

logger = logging.getLogger(__name__)

RECORD_TAG = "GaussianMixtureModel"


def _localname(tag):
    """Return XML local name without namespace."""
    return tag.split('}')[-1] if '}' in tag else tag


def _children(elem, name):
    return [c for c in elem if _localname(c.tag) == name]


def _child_text(elem, name):
    found = _children(elem, name)
    if not found or found[0].text is None:
        return None
    return found[0].text.strip()


@dataclass(frozen=True, eq=False)
class GaussianRecord:
    """One Gaussian of a TGMM frame, in view-local pixel coordinates."""

    local_id: int
    mean: tuple
    precision: np.ndarray
    nu: float
    parent: Optional[int] = None
    split_score: Optional[float] = None
    lineage: Optional[int] = None


def frame_path(folder, pattern, t):
    """Path of the frame-``t`` document; ``pattern`` has one printf integer slot."""
    return os.path.join(folder, pattern % t)


def _raw_field(elem, name):
    """Attribute value, falling back to a child element of the same name."""
    value = elem.attrib.get(name)
    if value is None:
        value = _child_text(elem, name)
    return value


def _floats(text, n, name):
    try:
        values = [float(v) for v in text.split()]
    except ValueError:
        raise ValueError(f"field {name!r} is not numeric: {text!r}") from None
    if len(values) != n:
        raise ValueError(f"field {name!r} needs {n} values, got {len(values)}")
    if not all(np.isfinite(values)):
        raise ValueError(f"field {name!r} has non-finite values")
    return values


def _int(text, name):
    try:
        return int(float(text)) if "." in text or "e" in text.lower() else int(text)
    except ValueError:
        raise ValueError(f"field {name!r} is not an integer: {text!r}") from None


def _parse_record(elem):
    """Turn one record element into a GaussianRecord.

    Raises ValueError for missing or malformed fields and
    linalg.LinAlgError when W is not symmetric positive-definite.
    """
    fields = {}
    for name in ("id", "m", "W", "nu"):
        value = _raw_field(elem, name)
        if value is None or not value.strip():
            raise ValueError(f"missing mandatory field {name!r}")
        fields[name] = value.strip()

    local_id = _int(fields["id"], "id")
    if local_id < 0:
        raise ValueError(f"negative id {local_id}")
    mean = tuple(_floats(fields["m"], 3, "m"))
    nu = _floats(fields["nu"], 1, "nu")[0]
    if nu <= 0:
        raise ValueError(f"nu must be positive, got {nu}")
    W = np.reshape(_floats(fields["W"], 9, "W"), (3, 3))

    parent = _raw_field(elem, "parent")
    parent = _int(parent.strip(), "parent") if parent and parent.strip() else None
    if parent is not None and parent < 0:
        parent = None
    split_score = _raw_field(elem, "splitScore")
    split_score = _floats(split_score, 1, "splitScore")[0] if split_score and split_score.strip() else None
    lineage = _raw_field(elem, "lineage")
    lineage = _int(lineage.strip(), "lineage") if lineage and lineage.strip() else None

    if not np.allclose(W, W.T, rtol=1e-6, atol=1e-12):
        raise linalg.LinAlgError("precision matrix is not symmetric")
    W = 0.5 * (W + W.T)
    # Raises LinAlgError on any non-positive pivot, zero eigenvalues included.
    linalg.cholesky(W, lower=True)
    W.setflags(write=False)

    return GaussianRecord(local_id=local_id, mean=mean, precision=W, nu=nu,
                          parent=parent, split_score=split_score, lineage=lineage)


def parse_frame_document(path):
    """
    Parse one TGMM frame document.

    Parameters
    ----------
    path : str
        Path to a ``GMEMfinalResult_frameXXXX.xml``-like file.

    Returns
    -------
    records : list of GaussianRecord
        Valid records in document order.
    problems : list of ImportIssue
        One FrameParseError or DegenerateRecord per skipped record.

    Raises
    ------
    FrameParseError
        If the document itself is not well-formed XML.
    """
    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise FrameParseError(str(e), path=path, position=getattr(e, "position", None)) from e
    except OSError as e:
        raise FrameParseError(f"cannot read document: {e}", path=path) from e
    root = tree.getroot()

    records, problems = [], []
    seen = set()
    for index, elem in enumerate(e for e in root.iter() if _localname(e.tag) == RECORD_TAG):
        record_id = elem.attrib.get("id", f"#{index}")
        try:
            record = _parse_record(elem)
        except linalg.LinAlgError as e:
            problems.append(DegenerateRecord(str(e) or "precision matrix is not positive-definite",
                                             path=path, record_id=record_id))
            continue
        except ValueError as e:
            problems.append(FrameParseError(str(e), path=path, record_id=record_id))
            continue
        if record.local_id in seen:
            problems.append(FrameParseError(f"duplicate id {record.local_id}",
                                            path=path, record_id=record_id))
            continue
        seen.add(record.local_id)
        records.append(record)

    logger.debug("Parsed %s: %d records, %d skipped", path, len(records), len(problems))
    return records, problems


def _parse_integer_pattern(text):
    """Expand BigDataViewer integer patterns like ``0-9``, ``1,3,5`` or ``0-10:2``."""
    values = []
    for part in text.replace(" ", "").split(","):
        if not part:
            continue
        step = 1
        if ":" in part:
            part, step = part.split(":")
            step = int(step)
        if "-" in part[1:]:
            split_at = part.index("-", 1)
            first, last = int(part[:split_at]), int(part[split_at + 1:])
            values.extend(range(first, last + 1, step))
        else:
            values.append(int(part))
    return values


def _parse_timepoints(elem):
    kind = elem.attrib.get("type", "range")
    if kind == "range":
        first, last = _child_text(elem, "first"), _child_text(elem, "last")
        if first is None or last is None:
            raise DatasetError("Timepoints of type 'range' need <first> and <last>")
        return list(range(int(first), int(last) + 1))
    if kind in ("list", "pattern"):
        pattern = _child_text(elem, "integerpattern")
        if pattern is None:
            raise DatasetError(f"Timepoints of type {kind!r} need <integerpattern>")
        return _parse_integer_pattern(pattern)
    raise DatasetError(f"Unsupported timepoints type {kind!r}")


def _parse_view_setups(elem):
    angle_names = {}
    for attributes in _children(elem, "Attributes"):
        if attributes.attrib.get("name") != "angle":
            continue
        for angle in _children(attributes, "Angle"):
            angle_names[_child_text(angle, "id")] = _child_text(angle, "name")

    setups = []
    for setup in _children(elem, "ViewSetup"):
        angle = None
        for attrs in _children(setup, "attributes"):
            angle_id = _child_text(attrs, "angle")
            if angle_id is not None:
                angle = angle_names.get(angle_id, angle_id)
        setups.append(ViewSetup(id=int(_child_text(setup, "id")),
                                name=_child_text(setup, "name"),
                                angle=angle))
    return setups


def _parse_registration(elem):
    model = AffineTransform3D.identity()
    for vt in _children(elem, "ViewTransform"):
        kind = vt.attrib.get("type", "affine")
        if kind != "affine":
            raise DatasetError(f"Unsupported view transform type {kind!r}")
        values = _child_text(vt, "affine")
        if values is None:
            raise DatasetError("ViewTransform without <affine> values")
        model = model.concatenate(AffineTransform3D.from_row_packed(values.split()))
    return model


def load_dataset_descriptor(xml_path):
    """
    Read view setups, timepoints and view registrations from a
    BigDataViewer/SpimData XML file.

    Several ViewTransforms inside one ViewRegistration are concatenated in
    document order, the first one being applied last.
    """
    try:
        root = ET.parse(xml_path).getroot()
    except (OSError, ET.ParseError) as e:
        raise DatasetError(f"Problem reading the image data file {xml_path}: {e}") from e

    try:
        seq = next((e for e in root.iter() if _localname(e.tag) == "SequenceDescription"), None)
        if seq is None:
            raise DatasetError(f"No <SequenceDescription> in {xml_path}")

        view_setups = []
        for elem in _children(seq, "ViewSetups"):
            view_setups.extend(_parse_view_setups(elem))
        timepoints = []
        for elem in _children(seq, "Timepoints"):
            timepoints.extend(_parse_timepoints(elem))

        registrations = {}
        for regs in (e for e in root.iter() if _localname(e.tag) == "ViewRegistrations"):
            for reg in _children(regs, "ViewRegistration"):
                key = (int(reg.attrib["timepoint"]), int(reg.attrib["setup"]))
                registrations[key] = _parse_registration(reg)
    except (KeyError, TypeError, ValueError) as e:
        raise DatasetError(f"Malformed image data file {xml_path}: {e!r}") from e

    logger.info("Loaded %s: %d view setups, %d timepoints, %d registrations",
                xml_path, len(view_setups), len(timepoints), len(registrations))
    return DatasetDescriptor(view_setups=view_setups, timepoints=timepoints,
                             registrations=registrations)
