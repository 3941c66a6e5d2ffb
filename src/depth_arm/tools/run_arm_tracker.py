import argparse
import logging
from typing import Optional

from depth_arm.algo.pipeline import ArmPosePipeline, PipelineConfig
from depth_arm.core.config_loader import load_config
from depth_arm.core.interfaces import ICamera
from depth_arm.core.logging_setup import configure_logging
from depth_arm.core.types import ArmPose

logger = logging.getLogger("depth_arm.run")


def _make_camera(config, data_root: Optional[str]) -> ICamera:
    if data_root:
        from depth_arm.io.file_camera import FileCamera
        return FileCamera(data_root)
    from depth_arm.io.realsense_camera import RealSenseCamera
    rs_cfg = config.get("camera", {}).get("realsense", {})
    return RealSenseCamera(
        depth_width=rs_cfg.get("depth_width", 640),
        depth_height=rs_cfg.get("depth_height", 480),
        fps=rs_cfg.get("fps", 30),
        preset=rs_cfg.get("preset", "high_accuracy"),
    )


def _fmt(p) -> str:
    if p is None:
        return "-"
    return f"({p[0]:+.3f}, {p[1]:+.3f}, {p[2]:+.3f})"


def _report(pose: ArmPose):
    angle = "-" if pose.bend_angle_deg is None else f"{pose.bend_angle_deg:.1f}"
    logger.info(
        "frame %d [%s] hand=%s elbow=%s shoulder=%s angle=%s",
        pose.frame_id, pose.status.value, _fmt(pose.hand), _fmt(pose.elbow), _fmt(pose.shoulder), angle,
    )


def main(argv=None):
    ap = argparse.ArgumentParser(description="Track one arm from a depth camera")
    ap.add_argument("--config", default="config.json", help="JSON config merged over the defaults")
    ap.add_argument("--data", default=None, help="replay a dataset root containing depth/ and meta.json")
    ap.add_argument("--max-frames", type=int, default=0, help="stop after this many frames (0 = no limit)")
    args = ap.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.get("logging", {}).get("level", "WARNING"))

    pipeline = ArmPosePipeline(PipelineConfig.from_dict(config))
    n = 0
    with _make_camera(config, args.data) as cam:
        while True:
            frame = cam.read_frame()
            if frame is None:
                break
            _report(pipeline.track(frame))
            n += 1
            if args.max_frames and n >= int(args.max_frames):
                break
    logger.info("processed %d frames", n)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
