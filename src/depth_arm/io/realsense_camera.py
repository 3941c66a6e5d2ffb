import logging
import time
import numpy as np
from typing import Any, Optional, cast
import pyrealsense2 as rs

from ..core.interfaces import ICamera
from ..core.types import Frame

rs = cast(Any, rs)

logger = logging.getLogger(__name__)

_PRESETS = {
    "default": 0.0,
    "hand": 1.0,
    "high_accuracy": 3.0,
    "high_density": 4.0
}

class RealSenseCamera(ICamera):
    def __init__(self, depth_width=640, depth_height=480, fps=30, preset="high_accuracy"):
        self._pipe: Optional[rs.pipeline] = None
        self._cfg: Optional[rs.config] = None
        self._frame_id = 0
        self._depth_w = int(depth_width)
        self._depth_h = int(depth_height)
        self._fps = int(fps)
        self._preset = str(preset).lower()
        self._intrinsics: Optional[np.ndarray] = None
        self._depth_scale_m: Optional[float] = None

    @property
    def depth_scale_m(self) -> Optional[float]:
        return self._depth_scale_m

    def open(self) -> bool:
        if len(rs.context().query_devices()) == 0:
            logger.error("No realsense devices are connected to the system at this time.")
            return False

        self._pipe = rs.pipeline()
        self._cfg = rs.config()
        self._cfg.enable_stream(rs.stream.depth, self._depth_w, self._depth_h, rs.format.z16, self._fps)
        try:
            profile = self._pipe.start(self._cfg)
        except RuntimeError as e:
            logger.error("failed to start depth stream: %s", e)
            self._pipe = None
            return False

        depth_sensor = profile.get_device().first_depth_sensor()
        self._depth_scale_m = float(depth_sensor.get_depth_scale())
        if depth_sensor.supports(rs.option.visual_preset):
            depth_sensor.set_option(rs.option.visual_preset, _PRESETS.get(self._preset, 3.0))
        else:
            logger.warning("depth sensor has no visual presets, ignoring preset %r", self._preset)

        depth_sp = profile.get_stream(rs.stream.depth).as_video_stream_profile()
        d_intr = depth_sp.get_intrinsics()
        self._intrinsics = np.array([float(d_intr.fx), float(d_intr.fy), float(d_intr.ppx), float(d_intr.ppy)], dtype=np.float32)
        logger.info("realsense depth stream %dx%d@%d, scale %.6f m", self._depth_w, self._depth_h, self._fps, self._depth_scale_m)
        self._frame_id = 0
        return True

    def read_frame(self) -> Optional[Frame]:
        if self._pipe is None:
            return None
        frames = self._pipe.wait_for_frames()
        ts = time.time()
        depth_frame = frames.get_depth_frame()
        if not depth_frame:
            raise RuntimeError("failed to capture depth image")
        depth = np.asanyarray(depth_frame.get_data())
        if depth.dtype != np.uint16:
            depth = depth.astype(np.uint16)
        if self._intrinsics is None or self._depth_scale_m is None:
            raise RuntimeError("intrinsics not loaded")
        frame = Frame(
            timestamp=ts,
            frame_id=self._frame_id,
            depth=depth.copy(),
            intrinsics=self._intrinsics,
            depth_scale_m=self._depth_scale_m,
        )
        self._frame_id += 1
        return frame

    def close(self):
        if self._pipe:
            try:
                self._pipe.stop()
            except RuntimeError as e:
                logger.warning("error stopping realsense pipeline: %s", e)
            self._pipe = None
