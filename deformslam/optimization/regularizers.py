"""Regulariser edges that tie landmark positions and deformations together."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from deformslam.optimization.graph import Edge, LandmarkVertex

DEFAULT_STIFFNESS = 1.1
"""Stiffness applied to distance-preserving regularisers."""


def _require_landmarks(vertices: Sequence[object]) -> None:
    for vertex in vertices:
        if not isinstance(vertex, LandmarkVertex):
            raise TypeError("regularisers connect LandmarkVertex instances only")


def _rest_distance(value: float) -> float:
    distance = float(value)
    if distance == 0.0:
        raise ValueError("rest distance must be non-zero")
    return distance


def _format_number(value: float) -> str:
    return f"{value:.6g}"


class PositionRegularizer(Edge):
    """Keeps the distance between two landmarks close to its rest value."""

    dimension = 1

    def __init__(self, landmark_1: LandmarkVertex, landmark_2: LandmarkVertex,
                 rest_distance: float, k: float = DEFAULT_STIFFNESS,
                 information: Optional[NDArray] = None) -> None:
        _require_landmarks((landmark_1, landmark_2))
        super().__init__((landmark_1, landmark_2), _rest_distance(rest_distance), information)
        self.k = float(k)

    def compute_error(self) -> NDArray[np.float64]:
        first, second = self.vertices
        distance = float(np.linalg.norm(first.estimate - second.estimate))
        self.error = np.array([self.k * (distance - self.measurement) / self.measurement])
        return self.error

    def linearize_oplus(self) -> None:
        first, second = self.vertices
        difference = first.estimate - second.estimate
        distance = float(np.linalg.norm(difference))
        scale = self.k / self.measurement
        with np.errstate(divide="ignore", invalid="ignore"):
            inv_sqrt = 1.0 / np.sqrt(distance)
        self.jacobians = [
            (scale * inv_sqrt * (2.0 * difference)).reshape(1, 3),
            (scale * inv_sqrt * (-2.0 * difference)).reshape(1, 3),
        ]


class PositionRegularizerWithDeformation(Edge):
    """Distance regulariser over two deformation vertices applied to rest positions."""

    dimension = 1

    def __init__(self, flow_1: LandmarkVertex, flow_2: LandmarkVertex,
                 rest_distance: float, rest_position_1: Sequence[float],
                 rest_position_2: Sequence[float], k: float = DEFAULT_STIFFNESS,
                 information: Optional[NDArray] = None) -> None:
        _require_landmarks((flow_1, flow_2))
        super().__init__((flow_1, flow_2), _rest_distance(rest_distance), information)
        self.rest_position_1 = np.array(rest_position_1, dtype=np.float64).reshape(3)
        self.rest_position_2 = np.array(rest_position_2, dtype=np.float64).reshape(3)
        self.k = float(k)

    def _current_positions(self):
        first, second = self.vertices
        return (self.rest_position_1 + first.estimate,
                self.rest_position_2 + second.estimate)

    def compute_error(self) -> NDArray[np.float64]:
        position_1, position_2 = self._current_positions()
        distance = float(np.linalg.norm(position_1 - position_2))
        self.error = np.array([self.k * (distance - self.measurement) / self.measurement])
        return self.error

    def linearize_oplus(self) -> None:
        position_1, position_2 = self._current_positions()
        distance = float(np.linalg.norm(position_1 - position_2))
        with np.errstate(divide="ignore", invalid="ignore"):
            a = self.k / (2.0 * self.measurement * distance)
        v = 2.0 * position_1 - 2.0 * position_2
        self.jacobians = [(a * v).reshape(1, 3), (-a * v).reshape(1, 3)]


class SpatialRegularizer(Edge):
    """Penalises different motion of two landmarks between two consecutive keyframes.

    Vertices are ordered: point 1 current, point 2 current, point 1 next, point 2 next.
    """

    dimension = 3

    def __init__(self, point_1_current: LandmarkVertex, point_2_current: LandmarkVertex,
                 point_1_next: LandmarkVertex, point_2_next: LandmarkVertex,
                 weight: float = 1.0, information: Optional[NDArray] = None) -> None:
        vertices = (point_1_current, point_2_current, point_1_next, point_2_next)
        _require_landmarks(vertices)
        super().__init__(vertices, None, information)
        self.weight = float(weight)

    def compute_error(self) -> NDArray[np.float64]:
        p1_current, p2_current, p1_next, p2_next = (v.estimate for v in self.vertices)
        self.error = self.weight * ((p1_next - p1_current) - (p2_next - p2_current))
        return self.error

    def linearize_oplus(self) -> None:
        eye = np.eye(3)
        self.jacobians = [-self.weight * eye, self.weight * eye,
                          self.weight * eye, -self.weight * eye]


class SpatialRegularizerFixed(Edge):
    """Pulls a deformation towards a fixed deformation held outside the edge's vertices."""

    dimension = 3

    def __init__(self, flow: LandmarkVertex, flow_fixed: LandmarkVertex,
                 weight: float = 1.0, information: Optional[NDArray] = None,
                 id1: int = 0, id2: int = 0) -> None:
        _require_landmarks((flow, flow_fixed))
        super().__init__((flow,), None, information)
        self.flow_fixed = flow_fixed
        self.weight = float(weight)
        self.id1 = id1
        self.id2 = id2

    def compute_error(self) -> NDArray[np.float64]:
        (flow,) = self.vertices
        self.error = self.weight * (flow.estimate - self.flow_fixed.estimate)
        return self.error

    def linearize_oplus(self) -> None:
        self.jacobians = [self.weight * np.eye(3)]


class SpatialRegularizerWithDeformation(Edge):
    """Penalises the difference between two deformation vertices."""

    dimension = 3

    def __init__(self, flow_1: LandmarkVertex, flow_2: LandmarkVertex,
                 weight: float = 1.0, information: Optional[NDArray] = None) -> None:
        _require_landmarks((flow_1, flow_2))
        super().__init__((flow_1, flow_2), None, information)
        self.weight = float(weight)

    def compute_error(self) -> NDArray[np.float64]:
        first, second = self.vertices
        self.error = self.weight * (first.estimate - second.estimate)
        return self.error

    def linearize_oplus(self) -> None:
        eye = np.eye(3)
        self.jacobians = [self.weight * eye, -self.weight * eye]

    def write(self) -> str:
        """Serialise the weight and the upper triangle of the information matrix."""
        parts = [" ", _format_number(self.weight), " "]
        for i in range(self.dimension):
            for j in range(i, self.dimension):
                parts.append(_format_number(float(self.information[i, j])) + " ")
        return "".join(parts)