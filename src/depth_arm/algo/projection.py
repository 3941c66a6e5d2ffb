from dataclasses import dataclass
from typing import Any, Dict, Tuple

import cv2
import numpy as np


@dataclass
class ProjectionConfig:
    min_depth_m: float = 0.1
    max_depth_m: float = 3.0

    @staticmethod
    def from_dict(config_dict: Dict[str, Any]) -> "ProjectionConfig":
        cfg = ProjectionConfig()
        for k, v in config_dict.items():
            if hasattr(cfg, k):
                setattr(cfg, k, v)
        return cfg


def depth_to_point_cloud(depth: np.ndarray, intrinsics: np.ndarray, depth_scale_m: float,
                         min_depth_m: float = 0.0, max_depth_m: float = float("inf")) -> np.ndarray:
    """
    Deprojects every non-zero pixel whose metric depth lies inside
    (min_depth_m, max_depth_m). Returns (N, 3) float32 in row-major pixel order.
    """
    if not (depth_scale_m > 0):
        raise ValueError(f"depth scale must be positive, got {depth_scale_m}")
    fx, fy, cx, cy = [float(x) for x in np.asarray(intrinsics).tolist()]
    z = depth.astype(np.float32) * float(depth_scale_m)
    valid = (depth > 0) & (z > min_depth_m) & (z < max_depth_m)
    vs, us = np.nonzero(valid)
    if vs.size == 0:
        return np.zeros((0, 3), dtype=np.float32)
    z_v = z[vs, us]
    x = (us.astype(np.float32) - cx) * z_v / fx
    y = (vs.astype(np.float32) - cy) * z_v / fy
    return np.stack([x, y, z_v], axis=1).astype(np.float32)


def downsample_depth(depth: np.ndarray, intrinsics: np.ndarray, factor: int) -> Tuple[np.ndarray, np.ndarray]:
    """Nearest-neighbor decimation; intrinsics are rescaled to the new grid."""
    factor = int(factor)
    if factor < 1:
        raise ValueError(f"downsample factor must be >= 1, got {factor}")
    intr = np.asarray(intrinsics, dtype=np.float32)
    if factor == 1:
        return depth, intr
    h, w = depth.shape[:2]
    new_w = max(1, w // factor)
    new_h = max(1, h // factor)
    small = cv2.resize(depth, (new_w, new_h), interpolation=cv2.INTER_NEAREST)
    sx = new_w / float(w)
    sy = new_h / float(h)
    fx, fy, cx, cy = [float(x) for x in intr.tolist()]
    small_intr = np.array([fx * sx, fy * sy, cx * sx, cy * sy], dtype=np.float32)
    return small, small_intr
