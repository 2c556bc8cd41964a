# patchwork

Ground segmentation for 3D LiDAR point clouds.

The space around the sensor is divided by a concentric zone model into
rings and sectors. In each patch with enough points, a plane is fitted by
PCA to the lowest points and refined over a few iterations; the patch is
then accepted or rejected as ground by its uprightness, elevation and
flatness. Optionally the sensor height is estimated from the ground near
the vehicle before the first scan is segmented.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from patchwork.loaders import KittiLoader
from patchwork.patchwork import PatchWork, PatchWorkParams

loader = KittiLoader("/data/SemanticKITTI/dataset/sequences/00")
cloud = loader.get_cloud(0)

segmenter = PatchWork(PatchWorkParams(sensor_model="HDL-64E"))
ground, non_ground = segmenter.estimate_ground(cloud)
print(len(ground), len(non_ground), segmenter.time_taken)
```

`PatchWorkParams` defaults to an HDL-64E mounted at 1.723 m, a range of
2.7 m to 80 m, three plane-fitting iterations, and elevation and flatness
thresholds for the four innermost rings. Points lower than
`-sensor_height - 2.0` and points outside the zone model are dropped from
both outputs. Patches with no more than `num_min_pts` points are kept as
ground unchanged.

## Modules

- `patchwork.patchwork` — `PatchWork` and `PatchWorkParams`.
  `PatchWork.estimate_ground(cloud)` returns `(ground, non_ground)` clouds
  and records `time_taken`, `patch_statuses` and `patch_features`.
  `PatchWork.estimate_sensor_height(cloud)` estimates and adopts the sensor
  height from nearby ground (run automatically on the first scan when
  `atat_on=True`); it raises `ValueError` when no usable ground is found.
- `patchwork.zone_models` — `ConcentricZoneModel`, with `get_ring_idx`,
  `get_sector_idx` and `get_ring_sector_idx`, and `xy2theta`.
- `patchwork.sensor_configs` — `SensorConfig` and `get_sensor_config` for
  `VLP-16`, `HDL-32E`, `HDL-64E`, `OS1-16`, `OS1-64` and `OS1-128`.
- `patchwork.estimation` — `estimate_plane` and `PCAFeature`,
  `extract_initial_seeds`, `consensus_set_based_height_estimation`,
  `determine_ground_likelihood_status` and `PatchStatus`.
- `patchwork.pointcloud` — `PointCloud`, numpy-backed coordinates,
  intensities and optional labels and instance ids, with `select`,
  `concatenate`, `with_labels`, `copy` and `PointCloud.empty`.
- `patchwork.loaders` — `KittiLoader` reads `velodyne/NNNNNN.bin` scans and
  `labels/NNNNNN.label` files of a sequence; `PcdLoader` reads numbered
  `NNNNNN.pcd` files holding raw float32 x, y, z, intensity records.
- `patchwork.evaluation` — counts against the SemanticKITTI ground classes
  (`count_num_ground`, `count_num_each_class`, `count_num_outliers`),
  `discern_ground`, `calculate_precision_recall`, and writers
  `save_all_labels`, `save_all_accuracy` and `pc2pcdfile` (ASCII PCD with
  the TP/FP/FN/TN code in the intensity field).
- `patchwork.tictoc` — `TicToc`, a stopwatch reporting in `sec` or `msec`.

## Command line

Segmenter options come before the subcommand:

```
patchwork [options] evaluate DATASET_PATH
patchwork [options] segment FILE.bin [FILE.bin ...]
```

`evaluate` runs over every scan of a SemanticKITTI sequence directory
(such as `.../dataset/sequences/00`) and appends one line per frame —
index, time, precision, recall, and precision and recall without outlier
correction — to `<root>/assets/patchwork/<seq>/<seq>.txt`, where `<root>`
is the directory holding `dataset`. The same is available in Python as
`patchwork.cli.evaluate_sequence`.

`segment` reads KITTI `.bin` scans and prints the processing time and the
number of ground points for each.

Options: `--sensor-model`, `--sensor-height`, `--max-r`, `--min-r`,
`--num-iter`, `--num-lpr`, `--num-min-pts`, `--th-seeds`, `--th-dist`,
`--uprightness-thr`, `--adaptive-seed-selection-margin`,
`--global-elevation-threshold`, `--elevation-thresholds`,
`--flatness-thresholds`, `--no-global-elevation`, `--atat`,
`--max-r-for-atat`, `--num-sectors-for-atat`, `--noise-bound` and
`--verbose`. The command exits with status 1 on invalid parameters or
unreadable files.

## What it does not do

The package works on clouds in memory and files on disk only. It does not
subscribe to or publish live sensor streams, draws no visualisation of the
patches, and writes no segmented clouds or `.label` files from the command
line; `segment` only reports counts and timing.