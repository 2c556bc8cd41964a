"""Command line entry point: evaluate on SemanticKITTI sequences or segment scans."""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .evaluation import calculate_precision_recall, discern_ground
from .loaders import KittiLoader
from .patchwork import PatchWork, PatchWorkParams
from .pointcloud import PointCloud

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """Evaluation outcome of one scan."""

    index: int
    time_taken: float
    precision: float
    recall: float
    precision_naive: float
    recall_naive: float
    num_tp: int
    num_fp: int
    num_fn: int
    num_tn: int

    def to_line(self) -> str:
        """Return the CSV record written to the sequence's result file."""
        return (
            f"{self.index},{self.time_taken:g},{self.precision:g},{self.recall:g},"
            f"{self.precision_naive:g},{self.recall_naive:g}"
        )


@dataclass
class EvaluationReport:
    """Where the results of a sequence went and what they were."""

    output_dir: Path
    output_file: Path
    frames: list[FrameResult] = field(default_factory=list)


def evaluate_sequence(dataset_path, params: PatchWorkParams | None = None) -> EvaluationReport:
    """Segment every scan of a SemanticKITTI sequence and score it against the labels.

    ``dataset_path`` is a sequence directory such as ``.../dataset/sequences/00``.
    Results are appended to ``<root>/assets/patchwork/<seq>/<seq>.txt``, where
    ``<root>`` is the directory holding ``dataset``.
    """
    sequence_dir = Path(dataset_path)
    seq = sequence_dir.name
    root = sequence_dir.parent.parent.parent
    output_dir = root / "assets" / "patchwork" / seq
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Output directory: %s", output_dir)
    output_file = output_dir / f"{seq}.txt"

    loader = KittiLoader(sequence_dir)
    segmenter = PatchWork(params)
    report = EvaluationReport(output_dir, output_file)

    for n in range(len(loader)):
        cloud = loader.get_cloud(n)
        ground, non_ground = segmenter.estimate_ground(cloud)
        precision, recall = calculate_precision_recall(cloud, ground)
        precision_naive, recall_naive = calculate_precision_recall(cloud, ground, False)
        tp, fp = discern_ground(ground)
        fn, tn = discern_ground(non_ground)

        result = FrameResult(
            index=n,
            time_taken=segmenter.time_taken,
            precision=precision,
            recall=recall,
            precision_naive=precision_naive,
            recall_naive=recall_naive,
            num_tp=len(tp),
            num_fp=len(fp),
            num_fn=len(fn),
            num_tn=len(tn),
        )
        with output_file.open("a") as out:
            out.write(result.to_line() + "\n")
        report.frames.append(result)

    logger.info("Finished SemanticKITTI evaluation.")
    return report


def _read_bin(path: Path) -> PointCloud:
    floats = np.fromfile(path, dtype="<f4")
    data = floats[: len(floats) // 4 * 4].reshape(-1, 4)
    return PointCloud(data[:, :3], data[:, 3])


def _segment_files(paths: list[str], params: PatchWorkParams) -> None:
    segmenter = PatchWork(params)
    for name in paths:
        cloud = _read_bin(Path(name))
        ground, _ = segmenter.estimate_ground(cloud)
        time_taken = segmenter.time_taken
        hz = 1.0 / time_taken if time_taken > 0 else math.inf
        print(
            f"[{name}] Time: {time_taken * 1000.0:.2f} ms | Hz: {hz:.2f} | "
            f"Points: {len(cloud)} -> {len(ground)}"
        )


_PARAM_OPTIONS = (
    ("--sensor-model", "sensor_model", str),
    ("--sensor-height", "sensor_height", float),
    ("--max-r", "max_range", float),
    ("--min-r", "min_range", float),
    ("--num-iter", "num_iter", int),
    ("--num-lpr", "num_lpr", int),
    ("--num-min-pts", "num_min_pts", int),
    ("--th-seeds", "th_seeds", float),
    ("--th-dist", "th_dist", float),
    ("--uprightness-thr", "uprightness_thr", float),
    ("--adaptive-seed-selection-margin", "adaptive_seed_selection_margin", float),
    ("--global-elevation-threshold", "global_elevation_thr", float),
    ("--max-r-for-atat", "max_r_for_atat", float),
    ("--num-sectors-for-atat", "num_sectors_for_atat", int),
    ("--noise-bound", "noise_bound", float),
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="patchwork", description="Ground segmentation of LiDAR point clouds."
    )
    for flag, dest, kind in _PARAM_OPTIONS:
        parser.add_argument(flag, dest=dest, type=kind, default=None)
    parser.add_argument("--elevation-thresholds", dest="elevation_thr", type=float, nargs="+")
    parser.add_argument("--flatness-thresholds", dest="flatness_thr", type=float, nargs="+")
    parser.add_argument(
        "--no-global-elevation", dest="using_global_thr", action="store_false", default=None
    )
    parser.add_argument("--atat", dest="atat_on", action="store_true", default=None)
    parser.add_argument("--verbose", dest="verbose", action="store_true", default=None)

    commands = parser.add_subparsers(dest="command", required=True)
    evaluate = commands.add_parser("evaluate", help="score a SemanticKITTI sequence")
    evaluate.add_argument("dataset_path", help="sequence directory, e.g. dataset/sequences/00")
    segment = commands.add_parser("segment", help="segment KITTI .bin scans")
    segment.add_argument("files", nargs="+")
    return parser


def _params_from(args: argparse.Namespace) -> PatchWorkParams:
    names = [dest for _, dest, _ in _PARAM_OPTIONS]
    names += ["elevation_thr", "flatness_thr", "using_global_thr", "atat_on", "verbose"]
    given = {name: getattr(args, name) for name in names if getattr(args, name) is not None}
    return PatchWorkParams(**given)


def main(argv=None) -> int:
    """Run the command line tool; return the exit status."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        params = _params_from(args)
        if args.command == "evaluate":
            report = evaluate_sequence(args.dataset_path, params)
            print(f"Evaluated {len(report.frames)} frames -> {report.output_file}")
        else:
            _segment_files(args.files, params)
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())