from dataclasses import dataclass
from enum import Enum
import numpy as np
from typing import Optional, List

@dataclass
class Frame:
    """Raw depth sensor frame"""
    timestamp: float
    frame_id: int
    depth: np.ndarray          # HxW uint16 (raw depth units)
    intrinsics: np.ndarray     # [fx, fy, cx, cy] of the depth stream
    depth_scale_m: float       # raw depth unit -> meters
    color: Optional[np.ndarray] = None  # HxWx3 BGR, unused by the tracker

class TrackingStatus(Enum):
    TRACKING = "tracking"
    COASTING = "coasting"
    LOST = "lost"

class ArmSearchOutcome(Enum):
    """How the hand -> shoulder graph walk terminated"""
    THRESHOLD_REACHED = "threshold_reached"
    DEAD_END = "dead_end"
    NO_HAND_CANDIDATE = "no_hand_candidate"

_STATUS_CONFIDENCE = {
    TrackingStatus.TRACKING: 1.0,
    TrackingStatus.COASTING: 0.5,
    TrackingStatus.LOST: 0.0,
}

@dataclass
class Joint:
    name: str
    position: np.ndarray       # [x, y, z] in meters
    confidence: float

@dataclass
class Skeleton:
    joints: List[Joint]
    confidence: float

@dataclass
class ArmPose:
    """Per-frame arm estimate handed to the application layer"""
    timestamp: float
    frame_id: int
    status: TrackingStatus
    hand: Optional[np.ndarray] = None      # [x, y, z] in meters
    elbow: Optional[np.ndarray] = None
    shoulder: Optional[np.ndarray] = None
    bend_angle_deg: Optional[float] = None

    def to_skeleton(self) -> Skeleton:
        conf = _STATUS_CONFIDENCE[self.status]
        joints: List[Joint] = []
        for name in ("hand", "elbow", "shoulder"):
            pos = getattr(self, name)
            if pos is None:
                pos = np.array([np.nan, np.nan, np.nan], dtype=np.float32)
                joints.append(Joint(name=name, position=pos, confidence=0.0))
            else:
                joints.append(Joint(name=name, position=np.asarray(pos, dtype=np.float32).copy(), confidence=conf))
        sk_conf = float(np.mean([j.confidence for j in joints]))
        return Skeleton(joints=joints, confidence=sk_conf)
