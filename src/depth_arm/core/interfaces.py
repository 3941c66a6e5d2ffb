from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .types import Frame, ArmPose

class ICamera(ABC):
    @abstractmethod
    def open(self) -> bool:
        pass

    @abstractmethod
    def read_frame(self) -> Optional[Frame]:
        pass

    @abstractmethod
    def close(self):
        pass

    def __enter__(self):
        if not self.open():
            raise RuntimeError(f"{type(self).__name__} could not be opened")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

@dataclass
class KMeansResult:
    labels: np.ndarray         # (N,) int32 cluster index per point
    centers: np.ndarray        # (k, 3) float32
    compactness: float         # sum of squared distances to the assigned centers

class IKMeansSolver(ABC):
    @abstractmethod
    def fit(self, points: np.ndarray, k: int, attempts: int, max_iter: int, epsilon: float) -> KMeansResult:
        """
        Clusters points (N, 3) into k groups, keeping the best of `attempts`
        k-means++ seeded runs.
        """
        pass

class IArmTracker(ABC):
    @abstractmethod
    def track(self, frame: Frame) -> ArmPose:
        pass
