import pytest

from tgmm_lineage.config import DEFAULT_PATTERN
from tgmm_lineage.transforms import AffineTransform3D, TransformProvider

IDENTITY_W = (1, 0, 0, 0, 1, 0, 0, 0, 1)


def _fmt(values):
    return " ".join(repr(float(v)) for v in values) + " "


def gmm_document(records):
    """TGMM frame document text for a list of record dicts.

    Keys: id, m, and optionally W, nu, parent, splitScore, lineage.
    """
    lines = ['<?xml version="1.0" encoding="utf-8"?>', "<document>"]
    for r in records:
        attrs = {
            "id": str(r["id"]),
            "lineage": str(r.get("lineage", 0)),
            "parent": str(r.get("parent", -1)),
            "scale": "1 1 1 ",
            "nu": repr(float(r.get("nu", 4.0))),
            "beta": "1",
            "m": _fmt(r["m"]),
            "W": _fmt(r.get("W", IDENTITY_W)),
            "nuPrior": "4",
            "betaPrior": "0.5",
            "alpha": "100",
        }
        if "splitScore" in r:
            attrs["splitScore"] = repr(float(r["splitScore"]))
        attr_text = " ".join(f'{k}="{v}"' for k, v in attrs.items())
        lines.append(f"<GaussianMixtureModel {attr_text}>")
        lines.append("</GaussianMixtureModel>")
    lines.append("</document>")
    return "\n".join(lines)


@pytest.fixture
def tgmm_folder(tmp_path):
    folder = tmp_path / "XML_finalResult_lht"
    folder.mkdir()
    return folder


@pytest.fixture
def write_frame(tgmm_folder):
    """Write the TGMM document of frame ``t`` into ``tgmm_folder``."""

    def _write(t, records, pattern=DEFAULT_PATTERN):
        path = tgmm_folder / (pattern % t)
        path.write_text(gmm_document(records))
        return path

    return _write


@pytest.fixture
def make_provider():
    """Transform provider for view setup 0 over ``n_frames`` timepoints."""

    def _make(n_frames, transform=None, setup=0):
        transform = transform or AffineTransform3D.identity()
        return TransformProvider(range(n_frames), {(t, setup): transform for t in range(n_frames)})

    return _make


@pytest.fixture
def write_dataset_xml(tmp_path):
    """Write a minimal BigDataViewer XML file and return its path."""

    def _write(timepoints_xml, setups=((0, "45"),), registrations=(), name="dataset.xml"):
        setup_xml = "\n".join(
            f"<ViewSetup><id>{sid}</id><name>{sid}</name><size>100 100 50</size>"
            f"<attributes><angle>{sid}</angle></attributes></ViewSetup>"
            for sid, _ in setups
        )
        angles_xml = "".join(
            f"<Angle><id>{sid}</id><name>{angle}</name></Angle>" for sid, angle in setups
        )
        regs_xml = "\n".join(
            f'<ViewRegistration timepoint="{tp}" setup="{sid}">'
            + "".join(
                f'<ViewTransform type="affine"><Name>t{i}</Name>'
                f"<affine>{' '.join(str(v) for v in affine)}</affine></ViewTransform>"
                for i, affine in enumerate(affines)
            )
            + "</ViewRegistration>"
            for tp, sid, affines in registrations
        )
        text = f"""<?xml version="1.0" encoding="UTF-8"?>
<SpimData version="0.2">
  <BasePath type="relative">.</BasePath>
  <SequenceDescription>
    <ImageLoader format="bdv.hdf5"><hdf5 type="relative">dataset.h5</hdf5></ImageLoader>
    <ViewSetups>
      {setup_xml}
      <Attributes name="angle">{angles_xml}</Attributes>
    </ViewSetups>
    {timepoints_xml}
  </SequenceDescription>
  <ViewRegistrations>
    {regs_xml}
  </ViewRegistrations>
</SpimData>
"""
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write
