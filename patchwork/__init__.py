"""Region-wise ground segmentation of 3D LiDAR point clouds with a concentric zone model."""

__version__ = "0.1.0"