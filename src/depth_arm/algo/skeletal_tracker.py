import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from ..core.interfaces import IKMeansSolver
from .kmeans import OpenCVKMeansSolver

logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    k: int = 12
    restarts: int = 3
    max_iter: int = 10
    epsilon: float = 1e-3
    # Two centers closer than this are connected in the adjacency graph
    connect_threshold_m: float = 0.15

    @staticmethod
    def from_dict(config_dict: Dict[str, Any]) -> "ClusteringConfig":
        cfg = ClusteringConfig()
        for k, v in config_dict.items():
            if hasattr(cfg, k):
                setattr(cfg, k, v)
        return cfg


class SkeletalTracker:
    """
    Groups the user's point cloud into k clusters and links cluster centers
    that lie close together. The resulting graph is what Arm walks.
    """

    def __init__(self, k: int, solver: Optional[IKMeansSolver] = None):
        if int(k) < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        self._k = int(k)
        self._solver = solver if solver is not None else OpenCVKMeansSolver()
        self.source_cloud: Optional[np.ndarray] = None   # (N, 3) meters
        self.cluster_ind: Optional[np.ndarray] = None    # (N,) cluster per point
        self.centers: Optional[np.ndarray] = None        # (k, 3)
        self.adj_kmeans: Optional[np.ndarray] = None     # (k, k) bool

    @property
    def k(self) -> int:
        return self._k

    def update_point_cloud(self, source: np.ndarray):
        """Call each time the source cloud changes, before clustering."""
        cloud = np.asarray(source, dtype=np.float32)
        if cloud.ndim != 2 or cloud.shape[1] != 3:
            raise ValueError(f"point cloud must be (N, 3), got shape {cloud.shape}")
        self.source_cloud = cloud

    def cluster(self, n: int, max_iter: int, epsilon: float) -> bool:
        """
        Runs k-means with n restarts. Returns False, leaving the previous
        assignment in place, when the cloud does not hold more than k points.
        """
        if self.source_cloud is None or self.source_cloud.shape[0] <= self._k:
            size = 0 if self.source_cloud is None else self.source_cloud.shape[0]
            logger.debug("skipping clustering: %d points for k=%d", size, self._k)
            return False

        result = self._solver.fit(self.source_cloud, self._k, int(n), int(max_iter), float(epsilon))
        if result.centers.shape != (self._k, 3):
            raise RuntimeError(f"solver returned centers of shape {result.centers.shape}, expected ({self._k}, 3)")
        self.cluster_ind = np.asarray(result.labels, dtype=np.int32).reshape(-1)
        self.centers = np.asarray(result.centers, dtype=np.float32)
        return True

    def connect_means(self, threshold: float):
        """Rebuilds the adjacency matrix: i-j connected iff |c_i - c_j| < threshold."""
        if self.centers is None:
            raise RuntimeError("connect_means called before a successful cluster()")
        diff = self.centers[:, None, :] - self.centers[None, :, :]
        dist = np.linalg.norm(diff, axis=2)
        adj = dist < float(threshold)
        np.fill_diagonal(adj, False)
        self.adj_kmeans = adj
