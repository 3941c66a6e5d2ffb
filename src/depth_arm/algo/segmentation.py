import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class SegmentationConfig:
    # Two connected pixels may differ by at most this much depth
    max_depth_delta_m: float = 0.05
    # L1 neighborhood radius, >1 bridges small sensor dropouts
    manhattan_radius: int = 2
    # Nearest-neighbor decimation applied before segmentation
    downsample: int = 1

    @staticmethod
    def from_dict(config_dict: Dict[str, Any]) -> "SegmentationConfig":
        cfg = SegmentationConfig()
        for k, v in config_dict.items():
            if hasattr(cfg, k):
                setattr(cfg, k, v)
        return cfg


def _diamond_offsets(radius: int) -> List[Tuple[int, int]]:
    """(dy, dx) pairs with |dy| + |dx| <= radius, origin excluded."""
    out = []
    for dy in range(-radius, radius + 1):
        span = radius - abs(dy)
        for dx in range(-span, span + 1):
            if dy == 0 and dx == 0:
                continue
            out.append((dy, dx))
    return out


def label_depth_regions(depth: np.ndarray, depth_scale_m: float, max_depth_delta_m: float,
                        manhattan_radius: int) -> Tuple[np.ndarray, Dict[int, int]]:
    """
    Splits the non-zero pixels of a depth grid into depth-continuous regions.

    Pixels are scanned in row-major order; each unclaimed non-zero pixel seeds a
    region that grows breadth-first through its L1 (diamond) neighborhood. A
    neighbor joins when its depth differs from the pixel it was reached from by
    less than max_depth_delta_m.

    Returns (cluster_map, areas): cluster_map is int32 with 0 for unassigned
    pixels and ids counting up from 1 in discovery order; areas maps id -> pixel
    count.
    """
    if depth.ndim != 2:
        raise ValueError(f"depth grid must be 2D, got shape {depth.shape}")
    if not (depth_scale_m > 0):
        raise ValueError(f"depth scale must be positive, got {depth_scale_m}")
    if not (max_depth_delta_m > 0):
        raise ValueError(f"max depth delta must be positive, got {max_depth_delta_m}")
    if int(manhattan_radius) < 1:
        raise ValueError(f"manhattan radius must be >= 1, got {manhattan_radius}")

    h, w = depth.shape
    cluster_map = np.zeros((h, w), dtype=np.int32)
    areas: Dict[int, int] = {}
    if h == 0 or w == 0:
        return cluster_map, areas

    # Compare in raw units; plain lists keep the inner loop off numpy scalars
    max_delta_raw = float(max_depth_delta_m) / float(depth_scale_m)
    values = depth.astype(np.int64).tolist()
    visited = (depth == 0).tolist()
    offsets = _diamond_offsets(int(manhattan_radius))

    next_id = 1
    for y0 in range(h):
        for x0 in range(w):
            if visited[y0][x0]:
                continue
            cid = next_id
            next_id += 1
            visited[y0][x0] = True
            cluster_map[y0, x0] = cid
            area = 1
            frontier = deque([(y0, x0)])
            while frontier:
                y, x = frontier.popleft()
                d = values[y][x]
                for dy, dx in offsets:
                    ny = y + dy
                    nx = x + dx
                    if ny < 0 or nx < 0 or ny >= h or nx >= w:
                        continue
                    if visited[ny][nx]:
                        continue
                    if abs(values[ny][nx] - d) >= max_delta_raw:
                        continue
                    visited[ny][nx] = True
                    cluster_map[ny, nx] = cid
                    area += 1
                    frontier.append((ny, nx))
            areas[cid] = area

    return cluster_map, areas


def largest_region(areas: Dict[int, int]) -> Optional[int]:
    """Max-area id; ties keep the region discovered first in row-major order."""
    winner = None
    best = 0
    for cid in sorted(areas):
        if areas[cid] > best:
            best = areas[cid]
            winner = cid
    return winner


def segment_background(depth: np.ndarray, depth_scale_m: float, max_depth_delta_m: float,
                       manhattan_radius: int) -> np.ndarray:
    """Keeps only the largest depth-continuous region, zeroing everything else."""
    cluster_map, areas = label_depth_regions(depth, depth_scale_m, max_depth_delta_m, manhattan_radius)
    winner = largest_region(areas)
    if winner is None:
        return np.zeros_like(depth)
    return np.where(cluster_map == winner, depth, 0).astype(depth.dtype)


class BackgroundSegmenter:
    def __init__(self, config: Optional[SegmentationConfig] = None):
        self._cfg = config if config is not None else SegmentationConfig()

    @property
    def config(self) -> SegmentationConfig:
        return self._cfg

    def segment_debug(self, depth: np.ndarray, depth_scale_m: float) -> Tuple[np.ndarray, Dict[str, Any]]:
        cluster_map, areas = label_depth_regions(
            depth,
            depth_scale_m,
            float(self._cfg.max_depth_delta_m),
            int(self._cfg.manhattan_radius),
        )
        winner = largest_region(areas)
        debug_info = {
            "cluster_map": cluster_map,
            "areas": areas,
            "winner": winner,
        }
        if winner is None:
            logger.debug("segmentation found no foreground pixels")
            return np.zeros_like(depth), debug_info

        logger.debug("segmentation kept region %d (%d px) out of %d regions", winner, areas[winner], len(areas))
        filtered = np.where(cluster_map == winner, depth, 0).astype(depth.dtype)
        return filtered, debug_info

    def segment(self, depth: np.ndarray, depth_scale_m: float) -> np.ndarray:
        filtered, _ = self.segment_debug(depth, depth_scale_m)
        return filtered
