"""Regulariser that ties two landmark observations to a measured flow."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from deformslam.optimization.graph import Edge, LandmarkVertex, PoseVertex


class SpatialRegularizerWithObservation(Edge):
    """Compares the flow of a landmark between two frames with an observed flow.

    Both landmark estimates are expressed in their camera frame and are taken to
    world coordinates by ``current_world_transform_camera`` and
    ``next_world_transform_camera`` before their difference is compared with the
    measured flow.
    """

    dimension = 3

    def __init__(self, current_landmark: LandmarkVertex, next_landmark: LandmarkVertex,
                 flow: Sequence[float], weight: float = 1.0,
                 current_world_transform_camera: Optional[PoseVertex] = None,
                 next_world_transform_camera: Optional[PoseVertex] = None,
                 information: Optional[NDArray] = None) -> None:
        for vertex in (current_landmark, next_landmark):
            if not isinstance(vertex, LandmarkVertex):
                raise TypeError("the regulariser connects LandmarkVertex instances only")
        measurement = np.array(flow, dtype=np.float64).reshape(3)
        super().__init__((current_landmark, next_landmark), measurement, information)
        self.weight = float(weight)
        self.current_world_transform_camera = (current_world_transform_camera
                                               if current_world_transform_camera is not None
                                               else PoseVertex())
        self.next_world_transform_camera = (next_world_transform_camera
                                            if next_world_transform_camera is not None
                                            else PoseVertex())

    def compute_error(self) -> NDArray[np.float64]:
        current, following = self.vertices
        current_position = self.current_world_transform_camera.map(current.estimate)
        next_position = self.next_world_transform_camera.map(following.estimate)
        self.error = self.weight * (self.measurement - (next_position - current_position))
        return self.error

    def linearize_oplus(self) -> None:
        eye = np.eye(3)
        self.jacobians = [self.weight * eye, -self.weight * eye]