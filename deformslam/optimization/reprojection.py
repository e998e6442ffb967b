"""Reprojection error edges between camera poses, landmarks and deformations."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

import numpy as np
from numpy.typing import NDArray

from deformslam.optimization.graph import Edge, LandmarkVertex, PoseVertex


class Projection(Protocol):
    """A camera model that projects camera-frame points to pixels."""

    def project(self, point: NDArray[np.float64]) -> Sequence[float]:
        """Pixel coordinates of a 3-D point in the camera frame."""

    def projection_jacobian(self, point: NDArray[np.float64]) -> NDArray[np.float64]:
        """2x3 derivative of :meth:`project` at ``point``."""


def pose_jacobian(point_camera: Sequence[float]) -> NDArray[np.float64]:
    """3x6 derivative of a camera-frame point w.r.t. a left pose increment (rotation, translation)."""
    x, y, z = np.asarray(point_camera, dtype=np.float64).reshape(3)
    return np.array([
        [0.0, z, -y, 1.0, 0.0, 0.0],
        [-z, 0.0, x, 0.0, 1.0, 0.0],
        [y, -x, 0.0, 0.0, 0.0, 1.0],
    ])


def _pixel(value: Sequence[float]) -> NDArray[np.float64]:
    return np.array(value, dtype=np.float64).reshape(2)


def _projected(calibration: Projection, point: NDArray[np.float64]) -> NDArray[np.float64]:
    return _pixel(calibration.project(point))


def _neg_projection_jacobian(calibration: Projection,
                             point: NDArray[np.float64]) -> NDArray[np.float64]:
    return -np.asarray(calibration.projection_jacobian(point), dtype=np.float64).reshape(2, 3)


def _check(vertex: object, kind: type, role: str) -> None:
    if not isinstance(vertex, kind):
        raise TypeError(f"{role} must be a {kind.__name__}")


def _fmt(value: float) -> str:
    return f"{value:.6g}"


class ReprojectionError(Edge):
    """Pixel error of a world landmark seen from a camera pose."""

    dimension = 2

    def __init__(self, pose: PoseVertex, landmark: LandmarkVertex, measurement: Sequence[float],
                 calibration: Projection, information: Optional[NDArray] = None) -> None:
        _check(pose, PoseVertex, "pose")
        _check(landmark, LandmarkVertex, "landmark")
        super().__init__((pose, landmark), _pixel(measurement), information)
        self.calibration = calibration

    def compute_error(self) -> NDArray[np.float64]:
        pose, landmark = self.vertices
        point_camera = pose.map(landmark.estimate)
        self.error = self.measurement - _projected(self.calibration, point_camera)
        return self.error

    def linearize_oplus(self) -> None:
        pose, landmark = self.vertices
        point_camera = pose.map(landmark.estimate)
        projection = _neg_projection_jacobian(self.calibration, point_camera)
        self.jacobians = [projection @ pose_jacobian(point_camera),
                          projection @ pose.rotation]


class ReprojectionErrorOnlyDeformation(Edge):
    """Pixel error of a landmark already expressed in the camera frame."""

    dimension = 2

    def __init__(self, landmark: LandmarkVertex, measurement: Sequence[float],
                 calibration: Projection, information: Optional[NDArray] = None) -> None:
        _check(landmark, LandmarkVertex, "landmark")
        super().__init__((landmark,), _pixel(measurement), information)
        self.calibration = calibration

    def compute_error(self) -> NDArray[np.float64]:
        (landmark,) = self.vertices
        self.error = self.measurement - _projected(self.calibration, landmark.estimate)
        return self.error


class ReprojectionErrorOnlyPose(Edge):
    """Pixel error of a fixed world landmark; only the camera pose is optimised."""

    dimension = 2

    def __init__(self, pose: PoseVertex, measurement: Sequence[float] = (0.0, 0.0),
                 landmark_world: Sequence[float] = (0.0, 0.0, 0.0),
                 calibration: Optional[Projection] = None,
                 information: Optional[NDArray] = None) -> None:
        _check(pose, PoseVertex, "pose")
        super().__init__((pose,), _pixel(measurement), information)
        self.landmark_world = np.array(landmark_world, dtype=np.float64).reshape(3)
        self.calibration = calibration

    def _camera(self) -> Projection:
        if self.calibration is None:
            raise ValueError("no calibration set")
        return self.calibration

    def compute_error(self) -> NDArray[np.float64]:
        (pose,) = self.vertices
        point_camera = pose.map(self.landmark_world)
        self.error = self.measurement - _projected(self._camera(), point_camera)
        return self.error

    def linearize_oplus(self) -> None:
        (pose,) = self.vertices
        point_camera = pose.map(self.landmark_world)
        projection = _neg_projection_jacobian(self._camera(), point_camera)
        self.jacobians = [projection @ pose_jacobian(point_camera)]

    def read(self, text: str) -> None:
        """Read the measurement and the upper triangle of the information matrix."""
        tokens = text.split()
        if len(tokens) < 5:
            raise ValueError("expected two measurement values and three information values")
        values = [float(t) for t in tokens[:5]]
        self.measurement = np.array(values[:2])
        info = np.empty((2, 2))
        info[0, 0] = values[2]
        info[0, 1] = info[1, 0] = values[3]
        info[1, 1] = values[4]
        self.information = info

    def write(self) -> str:
        """Serialise the measurement and the upper triangle of the information matrix."""
        parts = [_fmt(float(v)) + " " for v in self.measurement]
        for i in range(2):
            for j in range(i, 2):
                parts.append(" " + _fmt(float(self.information[i, j])))
        return "".join(parts)


class ReprojectionErrorWithDeformation(Edge):
    """Pixel error of a rest landmark displaced by a deformation vertex."""

    dimension = 2

    def __init__(self, pose: PoseVertex, deformation: LandmarkVertex,
                 measurement: Sequence[float], landmark_world: Sequence[float],
                 calibration: Projection, information: Optional[NDArray] = None) -> None:
        _check(pose, PoseVertex, "pose")
        _check(deformation, LandmarkVertex, "deformation")
        super().__init__((pose, deformation), _pixel(measurement), information)
        self.landmark_world = np.array(landmark_world, dtype=np.float64).reshape(3)
        self.calibration = calibration

    def _point_camera(self) -> NDArray[np.float64]:
        pose, deformation = self.vertices
        return pose.map(deformation.estimate + self.landmark_world)

    def compute_error(self) -> NDArray[np.float64]:
        self.error = self.measurement - _projected(self.calibration, self._point_camera())
        return self.error

    def linearize_oplus(self) -> None:
        pose, _ = self.vertices
        point_camera = self._point_camera()
        projection = _neg_projection_jacobian(self.calibration, point_camera)
        self.jacobians = [projection @ pose_jacobian(point_camera),
                          projection @ pose.rotation]