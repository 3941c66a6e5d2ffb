from typing import Optional

import cv2
import numpy as np

from ..core.interfaces import IKMeansSolver, KMeansResult


def _check_input(points: np.ndarray, k: int) -> np.ndarray:
    pts = np.ascontiguousarray(points, dtype=np.float32)
    if pts.ndim != 2:
        raise ValueError(f"points must be (N, D), got shape {pts.shape}")
    if k < 1 or pts.shape[0] < k:
        raise ValueError(f"cannot form {k} clusters from {pts.shape[0]} points")
    return pts


class OpenCVKMeansSolver(IKMeansSolver):
    """cv2.kmeans with k-means++ seeding."""

    def fit(self, points: np.ndarray, k: int, attempts: int, max_iter: int, epsilon: float) -> KMeansResult:
        pts = _check_input(points, k)
        criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, int(max_iter), float(epsilon))
        compactness, labels, centers = cv2.kmeans(
            pts, int(k), None, criteria, max(1, int(attempts)), cv2.KMEANS_PP_CENTERS
        )
        return KMeansResult(
            labels=labels.reshape(-1).astype(np.int32),
            centers=centers.astype(np.float32),
            compactness=float(compactness),
        )


def _sq_dists(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    diff = points[:, None, :] - centers[None, :, :]
    return np.sum(diff * diff, axis=2)


def _kmeans_pp_init(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    n = points.shape[0]
    centers = np.empty((k, points.shape[1]), dtype=np.float64)
    centers[0] = points[rng.integers(n)]
    closest = np.sum((points - centers[0]) ** 2, axis=1)
    for i in range(1, k):
        total = float(np.sum(closest))
        if total <= 0.0:
            # All remaining points coincide with a chosen center
            idx = int(rng.integers(n))
        else:
            idx = int(rng.choice(n, p=closest / total))
        centers[i] = points[idx]
        closest = np.minimum(closest, np.sum((points - centers[i]) ** 2, axis=1))
    return centers


class NumpyKMeansSolver(IKMeansSolver):
    """
    Seeded k-means++ / Lloyd implementation. Same contract as the OpenCV
    solver but reproducible, which makes it the one to use in tests.
    """

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.default_rng(seed)

    def _run(self, points: np.ndarray, k: int, max_iter: int, epsilon: float):
        centers = _kmeans_pp_init(points, k, self._rng)
        for _ in range(max(1, int(max_iter))):
            labels = np.argmin(_sq_dists(points, centers), axis=1)
            new_centers = centers.copy()
            for j in range(k):
                members = points[labels == j]
                if members.shape[0] > 0:
                    new_centers[j] = members.mean(axis=0)
            shift = float(np.max(np.linalg.norm(new_centers - centers, axis=1)))
            centers = new_centers
            if shift < epsilon:
                break
        d2 = _sq_dists(points, centers)
        labels = np.argmin(d2, axis=1)
        compactness = float(np.sum(d2[np.arange(points.shape[0]), labels]))
        return labels, centers, compactness

    def fit(self, points: np.ndarray, k: int, attempts: int, max_iter: int, epsilon: float) -> KMeansResult:
        pts = _check_input(points, k).astype(np.float64)
        best = None
        for _ in range(max(1, int(attempts))):
            labels, centers, compactness = self._run(pts, int(k), max_iter, float(epsilon))
            if best is None or compactness < best[2]:
                best = (labels, centers, compactness)
        labels, centers, compactness = best
        return KMeansResult(
            labels=labels.astype(np.int32),
            centers=centers.astype(np.float32),
            compactness=compactness,
        )
