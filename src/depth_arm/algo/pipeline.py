import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..core.interfaces import IArmTracker, IKMeansSolver
from ..core.types import ArmPose, Frame, TrackingStatus
from .arm import Arm, ArmConfig, BendAngleError
from .projection import ProjectionConfig, depth_to_point_cloud, downsample_depth
from .segmentation import BackgroundSegmenter, SegmentationConfig
from .skeletal_tracker import ClusteringConfig, SkeletalTracker

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    arm: ArmConfig = field(default_factory=ArmConfig)

    @staticmethod
    def from_dict(config_dict: Dict[str, Any]) -> "PipelineConfig":
        return PipelineConfig(
            segmentation=SegmentationConfig.from_dict(config_dict.get("segmentation", {})),
            projection=ProjectionConfig.from_dict(config_dict.get("projection", {})),
            clustering=ClusteringConfig.from_dict(config_dict.get("clustering", {})),
            arm=ArmConfig.from_dict(config_dict.get("arm", {})),
        )


class ArmPosePipeline(IArmTracker):
    """depth frame -> segment -> project -> cluster -> connect -> arm joints"""

    def __init__(self, config: Optional[PipelineConfig] = None, solver: Optional[IKMeansSolver] = None):
        self._cfg = config if config is not None else PipelineConfig()
        self._segmenter = BackgroundSegmenter(self._cfg.segmentation)
        self.tracker = SkeletalTracker(int(self._cfg.clustering.k), solver)
        arm_cfg = self._cfg.arm
        self.arm = Arm(
            self.tracker,
            np.asarray(arm_cfg.start_pos, dtype=np.float64),
            float(arm_cfg.max_dist_to_start_m),
            float(arm_cfg.dxdz_threshold),
            int(arm_cfg.max_missed_steps),
        )

    def track_debug(self, frame: Frame) -> Tuple[ArmPose, Dict[str, Any]]:
        debug_info = {
            "filtered_depth": None,
            "point_cloud": None,
            "clustered": False,
            "outcome": None,
            "chain": [],
        }

        depth, intrinsics = downsample_depth(frame.depth, frame.intrinsics, int(self._cfg.segmentation.downsample))
        filtered = self._segmenter.segment(depth, frame.depth_scale_m)
        debug_info["filtered_depth"] = filtered

        proj = self._cfg.projection
        cloud = depth_to_point_cloud(
            filtered, intrinsics, frame.depth_scale_m, float(proj.min_depth_m), float(proj.max_depth_m)
        )
        debug_info["point_cloud"] = cloud

        clus = self._cfg.clustering
        self.tracker.update_point_cloud(cloud)
        if self.tracker.cluster(int(clus.restarts), int(clus.max_iter), float(clus.epsilon)):
            debug_info["clustered"] = True
            self.tracker.connect_means(float(clus.connect_threshold_m))
            status = self.arm.update_joints(float(self._cfg.arm.smoothing_factor))
            debug_info["outcome"] = self.arm.last_outcome
            debug_info["chain"] = list(self.arm.kmean_ind)
        else:
            logger.debug("frame %d: %d points, not enough to cluster", frame.frame_id, cloud.shape[0])
            status = self.arm.mark_missed()

        return self._make_pose(frame, status), debug_info

    def track(self, frame: Frame) -> ArmPose:
        pose, _ = self.track_debug(frame)
        return pose

    def _make_pose(self, frame: Frame, status: TrackingStatus) -> ArmPose:
        pose = ArmPose(timestamp=frame.timestamp, frame_id=frame.frame_id, status=status)
        if status is TrackingStatus.LOST or self.arm.hand_loc is None:
            return pose
        pose.hand = self.arm.hand_loc.copy()
        pose.elbow = self.arm.elbow_loc.copy()
        pose.shoulder = self.arm.shoulder_loc.copy()
        try:
            pose.bend_angle_deg = self.arm.get_bend_angle()
        except BendAngleError as e:
            logger.debug("frame %d: %s", frame.frame_id, e)
        return pose
