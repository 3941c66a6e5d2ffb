import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.types import ArmSearchOutcome, TrackingStatus
from .skeletal_tracker import SkeletalTracker

logger = logging.getLogger(__name__)


@dataclass
class ArmConfig:
    # Approximate hand location in camera coordinates (meters)
    start_pos: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.5])
    max_dist_to_start_m: float = 0.3
    # Stop walking up the arm once |dx|/dz between two steps exceeds this
    dxdz_threshold: float = 1.5
    max_missed_steps: int = 5
    smoothing_factor: float = 0.3

    @staticmethod
    def from_dict(config_dict: Dict[str, Any]) -> "ArmConfig":
        cfg = ArmConfig()
        for k, v in config_dict.items():
            if hasattr(cfg, k):
                setattr(cfg, k, v)
        return cfg


class BendAngleError(ValueError):
    """Bend angle requested while hand, elbow or shoulder is undefined or coincident."""


def lerp(target: np.ndarray, current: np.ndarray, t: float) -> np.ndarray:
    """current + (target - current) * t"""
    if not (0.0 <= t <= 1.0):
        raise ValueError(f"interpolation factor must be in [0, 1], got {t}")
    return current + (target - current) * t


class Arm:
    """
    Tracks one arm on top of a SkeletalTracker.

    The hand is assumed to be the part of the arm nearest the camera, so the
    cluster closest to start_pos (but further away in z) starts the chain. The
    chain then climbs the cluster graph away from the camera until the lateral
    change per step outgrows the depth change (the turn at the shoulder) or
    the graph runs out. Joints are smoothed across frames and held for up to
    max_missed_steps frames when the chain cannot be rebuilt.

    A lost arm is picked up again by the next successful update; the joints
    snap to the new fix instead of blending from the stale one.
    """

    def __init__(self, source: SkeletalTracker, start_pos, max_dist_to_start: float, dxdz_threshold: float,
                 max_missed_steps: int = 5):
        self.source = source
        self.start_pos = np.asarray(start_pos, dtype=np.float64).reshape(3)
        self.max_dist_to_start = float(max_dist_to_start)
        self.dxdz_threshold = float(dxdz_threshold)
        self.max_missed_steps = int(max_missed_steps)

        # Cluster indices from hand (front) to shoulder (back)
        self.kmean_ind: List[int] = []
        self.elbow_kmean_ind: Optional[int] = None
        self.elbow_approx_ind: Optional[int] = None   # cloud point closest to the elbow

        self.hand_loc: Optional[np.ndarray] = None
        self.elbow_loc: Optional[np.ndarray] = None
        self.shoulder_loc: Optional[np.ndarray] = None

        self.tracking_step = 0
        self.last_tracked_step = -self.max_missed_steps - 1
        self.last_outcome: Optional[ArmSearchOutcome] = None
        self._status = TrackingStatus.LOST

    @property
    def status(self) -> TrackingStatus:
        return self._status

    @property
    def missed_steps(self) -> int:
        return self.tracking_step - self.last_tracked_step

    def reset(self):
        self.kmean_ind = []
        self.elbow_kmean_ind = None
        self.elbow_approx_ind = None
        self.hand_loc = None
        self.elbow_loc = None
        self.shoulder_loc = None
        self.tracking_step = 0
        self.last_tracked_step = -self.max_missed_steps - 1
        self.last_outcome = None
        self._status = TrackingStatus.LOST

    def find_closest_center_hand(self) -> Optional[int]:
        centers = self.source.centers
        if centers is None or len(centers) == 0:
            return None
        dists = np.linalg.norm(centers - self.start_pos, axis=1)
        ok = (centers[:, 2] > self.start_pos[2]) & (dists <= self.max_dist_to_start)
        if not np.any(ok):
            return None
        candidates = np.flatnonzero(ok)
        return int(candidates[np.argmin(dists[candidates])])

    def update_arm_list(self) -> ArmSearchOutcome:
        self.kmean_ind = []
        hand = self.find_closest_center_hand()
        if hand is None:
            return ArmSearchOutcome.NO_HAND_CANDIDATE

        centers = self.source.centers
        adj = self.source.adj_kmeans
        if adj is None:
            raise RuntimeError("update_arm_list called before connect_means()")

        dist_to_mean = np.linalg.norm(centers - centers.mean(axis=0), axis=1)
        chain = [hand]
        visited = {hand}
        cur = hand
        while True:
            candidates = [
                int(j) for j in np.flatnonzero(adj[cur])
                if int(j) not in visited and centers[j, 2] > centers[cur, 2]
            ]
            if not candidates:
                outcome = ArmSearchOutcome.DEAD_END
                break
            nxt = max(candidates, key=lambda j: dist_to_mean[j])
            chain.append(nxt)
            visited.add(nxt)
            dx = abs(float(centers[nxt, 0] - centers[cur, 0]))
            dz = float(centers[nxt, 2] - centers[cur, 2])
            cur = nxt
            if dx / dz > self.dxdz_threshold:
                outcome = ArmSearchOutcome.THRESHOLD_REACHED
                break

        self.kmean_ind = chain
        return outcome

    def update_elbow_approx(self) -> Optional[int]:
        """
        Picks the interior chain node furthest from both ends (max product of
        distances to hand and shoulder). None when the chain has no interior.
        """
        self.elbow_kmean_ind = None
        self.elbow_approx_ind = None
        if len(self.kmean_ind) < 3:
            return None

        centers = self.source.centers
        hand = centers[self.kmean_ind[0]]
        shoulder = centers[self.kmean_ind[-1]]
        best_score = -1.0
        for idx in self.kmean_ind[1:-1]:
            c = centers[idx]
            score = float(np.linalg.norm(c - hand) * np.linalg.norm(c - shoulder))
            if score > best_score:
                best_score = score
                self.elbow_kmean_ind = idx

        cloud = self.source.source_cloud
        if cloud is not None and cloud.shape[0] > 0:
            d = np.linalg.norm(cloud - centers[self.elbow_kmean_ind], axis=1)
            self.elbow_approx_ind = int(np.argmin(d))
        return self.elbow_kmean_ind

    def _miss(self) -> TrackingStatus:
        prev = self._status
        if self.missed_steps > self.max_missed_steps:
            self._status = TrackingStatus.LOST
        else:
            self._status = TrackingStatus.COASTING
        if self._status is not prev:
            logger.info("arm %s -> %s after %d missed steps", prev.value, self._status.value, self.missed_steps)
        return self._status

    def mark_missed(self) -> TrackingStatus:
        """Counts a frame that produced no usable clusters."""
        self.tracking_step += 1
        self.last_outcome = None
        return self._miss()

    def update_joints(self, smoothing_factor: float) -> TrackingStatus:
        if not (0.0 <= smoothing_factor <= 1.0):
            raise ValueError(f"smoothing factor must be in [0, 1], got {smoothing_factor}")
        self.tracking_step += 1

        self.last_outcome = self.update_arm_list()
        if self.last_outcome is not ArmSearchOutcome.THRESHOLD_REACHED:
            logger.debug("arm search failed: %s", self.last_outcome.value)
            return self._miss()
        if self.update_elbow_approx() is None:
            logger.debug("arm chain too short for an elbow: %d nodes", len(self.kmean_ind))
            return self._miss()

        centers = self.source.centers.astype(np.float64)
        hand = centers[self.kmean_ind[0]]
        elbow = centers[self.elbow_kmean_ind]
        shoulder = centers[self.kmean_ind[-1]]

        if self.hand_loc is None or self._status is TrackingStatus.LOST:
            self.hand_loc = hand.copy()
            self.elbow_loc = elbow.copy()
            self.shoulder_loc = shoulder.copy()
        else:
            self.hand_loc = lerp(hand, self.hand_loc, smoothing_factor)
            self.elbow_loc = lerp(elbow, self.elbow_loc, smoothing_factor)
            self.shoulder_loc = lerp(shoulder, self.shoulder_loc, smoothing_factor)

        if self._status is not TrackingStatus.TRACKING:
            logger.info("arm %s -> tracking", self._status.value)
        self.last_tracked_step = self.tracking_step
        self._status = TrackingStatus.TRACKING
        return self._status

    def get_bend_angle(self) -> float:
        """Elbow bend in degrees between (hand - elbow) and (shoulder - elbow)."""
        if self.hand_loc is None or self.elbow_loc is None or self.shoulder_loc is None:
            raise BendAngleError("no joint estimate yet")
        v1 = self.hand_loc - self.elbow_loc
        v2 = self.shoulder_loc - self.elbow_loc
        n1 = float(np.linalg.norm(v1))
        n2 = float(np.linalg.norm(v2))
        if n1 < 1e-6 or n2 < 1e-6:
            raise BendAngleError(f"degenerate arm segment (|hand-elbow|={n1:.3g}, |shoulder-elbow|={n2:.3g})")
        cos_a = float(np.clip(np.dot(v1, v2) / (n1 * n2), -1.0, 1.0))
        return float(np.degrees(np.arccos(cos_a)))
