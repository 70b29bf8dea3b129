"""
Command-line interface for importing TGMM results.

Uses `import_and_export()` defined in `batch.py`.

Example usage:
    python import_cli.py --dataset ./data/dataset.xml --tgmm ./data/GMEMtracking3D/XML_finalResult_lht \
        --output ./results --split-policy unlink_all_splits
"""

import argparse
import logging

from tgmm_lineage.batch import import_and_export
from tgmm_lineage.config import DEFAULT_PATTERN, ImportSettings, SplitPolicy


def main():
    parser = argparse.ArgumentParser(
        description="Import TGMM results with a BigDataViewer dataset and export spot, edge and track tables."
    )

    parser.add_argument("--dataset", "-d", required=True,
                        help="BigDataViewer XML file of the image data.")
    parser.add_argument("--tgmm", "-t", required=True,
                        help="Folder containing the TGMM frame XML files.")
    parser.add_argument("--output", "-o", required=True,
                        help="Output folder for the TSV tables.")
    parser.add_argument("--view-setup", type=int, default=0,
                        help="Id of the view setup TGMM was run on.")
    parser.add_argument("--pattern", default=DEFAULT_PATTERN,
                        help="printf-style name of the frame files.")
    parser.add_argument("--split-policy", default=SplitPolicy.KEEP_INTACT.value,
                        choices=[p.value for p in SplitPolicy],
                        help="How to handle cell divisions.")
    parser.add_argument("--crop", type=float, nargs=6, default=None,
                        metavar=("XMIN", "YMIN", "ZMIN", "XMAX", "YMAX", "ZMAX"),
                        help="World-space box to keep.")
    parser.add_argument("--t-from", type=int, default=None)
    parser.add_argument("--t-to", type=int, default=None)
    parser.add_argument("--dt", type=float, default=1.0,
                        help="Frame interval used for POSITION_T.")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    time_range = None
    if args.t_from is not None or args.t_to is not None:
        time_range = (args.t_from or 0, args.t_to if args.t_to is not None else 2 ** 31 - 1)

    settings = ImportSettings(
        view_setup_id=args.view_setup,
        interval=args.crop,
        time_range=time_range,
        split_policy=args.split_policy,
        dt=args.dt,
        pattern=args.pattern,
    )
    import_and_export(args.tgmm, args.dataset, args.output, settings=settings)


if __name__ == "__main__":
    main()
