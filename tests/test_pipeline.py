import numpy as np
import pytest

from depth_arm.algo.arm import ArmConfig
from depth_arm.algo.pipeline import ArmPosePipeline, PipelineConfig
from depth_arm.algo.projection import ProjectionConfig
from depth_arm.algo.segmentation import SegmentationConfig
from depth_arm.algo.skeletal_tracker import ClusteringConfig
from depth_arm.core.config_loader import default_config
from depth_arm.core.interfaces import IKMeansSolver, KMeansResult
from depth_arm.core.types import Frame, TrackingStatus

ARM_CENTERS = np.array([
    [0.00, 0.0, 0.50],
    [0.00, 0.0, 0.65],
    [0.02, 0.0, 0.80],
    [0.15, 0.0, 0.85],
], dtype=np.float32)


class FixedCentersSolver(IKMeansSolver):
    def __init__(self):
        self.seen = []

    def fit(self, points, k, attempts, max_iter, epsilon):
        self.seen.append(points.copy())
        labels = np.zeros(points.shape[0], dtype=np.int32)
        return KMeansResult(labels=labels, centers=ARM_CENTERS[:k].copy(), compactness=0.0)


def _config():
    return PipelineConfig(
        segmentation=SegmentationConfig(max_depth_delta_m=0.05, manhattan_radius=1, downsample=1),
        projection=ProjectionConfig(min_depth_m=0.1, max_depth_m=3.0),
        clustering=ClusteringConfig(k=4, restarts=1, max_iter=5, epsilon=1e-3, connect_threshold_m=0.2),
        arm=ArmConfig(start_pos=[0.0, 0.0, 0.4], max_dist_to_start_m=0.3, dxdz_threshold=1.5,
                      max_missed_steps=2, smoothing_factor=0.5),
    )


def _frame(depth, frame_id=0):
    return Frame(
        timestamp=float(frame_id) / 30.0,
        frame_id=frame_id,
        depth=depth,
        intrinsics=np.array([100.0, 100.0, 8.0, 8.0], dtype=np.float32),
        depth_scale_m=0.001,
    )


def _subject_with_noise():
    depth = np.zeros((16, 16), dtype=np.uint16)
    depth[4:12, 4:10] = 700
    depth[0, 15] = 2500
    return depth


def test_pipeline_tracks_largest_region():
    solver = FixedCentersSolver()
    pipeline = ArmPosePipeline(_config(), solver)

    pose, info = pipeline.track_debug(_frame(_subject_with_noise()))

    assert info["clustered"] is True
    assert np.count_nonzero(info["filtered_depth"]) == 48
    assert info["point_cloud"].shape == (48, 3)
    assert np.allclose(solver.seen[0][:, 2], 0.7)
    assert info["chain"] == [0, 1, 2, 3]

    assert pose.status is TrackingStatus.TRACKING
    assert pose.frame_id == 0
    assert np.allclose(pose.hand, ARM_CENTERS[0])
    assert np.allclose(pose.elbow, ARM_CENTERS[2])
    assert np.allclose(pose.shoulder, ARM_CENTERS[3])
    assert pose.bend_angle_deg == pytest.approx(pipeline.arm.get_bend_angle())


def test_empty_frames_coast_then_lose_the_arm():
    pipeline = ArmPosePipeline(_config(), FixedCentersSolver())
    pipeline.track(_frame(_subject_with_noise(), 0))
    empty = np.zeros((16, 16), dtype=np.uint16)

    statuses = []
    for i in range(1, 4):
        pose, info = pipeline.track_debug(_frame(empty, i))
        assert info["clustered"] is False
        statuses.append(pose.status)
        if pose.status is TrackingStatus.COASTING:
            assert np.allclose(pose.hand, ARM_CENTERS[0])
    assert statuses == [TrackingStatus.COASTING, TrackingStatus.COASTING, TrackingStatus.LOST]
    assert pose.hand is None and pose.bend_angle_deg is None


def test_pipeline_downsamples_before_segmenting():
    cfg = _config()
    cfg.segmentation.downsample = 2
    solver = FixedCentersSolver()
    pipeline = ArmPosePipeline(cfg, solver)
    depth = np.zeros((16, 16), dtype=np.uint16)
    depth[4:12, 4:12] = 700

    _, info = pipeline.track_debug(_frame(depth))
    assert info["filtered_depth"].shape == (8, 8)
    assert info["point_cloud"].shape[0] == 16


def test_pipeline_config_from_default_dict():
    cfg = PipelineConfig.from_dict(default_config())
    assert cfg.clustering.k == 12
    assert cfg.segmentation.manhattan_radius == 2
    assert cfg.arm.start_pos == [0.0, 0.0, 0.5]
    assert cfg.projection.max_depth_m == pytest.approx(3.0)


def test_arm_pose_exports_skeleton():
    pipeline = ArmPosePipeline(_config(), FixedCentersSolver())
    pose = pipeline.track(_frame(_subject_with_noise()))
    sk = pose.to_skeleton()
    names = [j.name for j in sk.joints]
    assert names == ["hand", "elbow", "shoulder"]
    assert sk.confidence == pytest.approx(1.0)
    assert np.allclose(sk.joints[0].position, ARM_CENTERS[0])

    lost = ArmPosePipeline(_config(), FixedCentersSolver()).track(_frame(np.zeros((4, 4), dtype=np.uint16)))
    sk = lost.to_skeleton()
    assert sk.confidence == 0.0
    assert all(np.all(np.isnan(j.position)) for j in sk.joints)
