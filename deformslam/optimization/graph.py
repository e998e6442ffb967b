"""Vertices and edges of a small least-squares optimisation graph."""

from __future__ import annotations

import abc
from typing import Any, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

NUMERIC_DELTA = 1e-6
"""Step used for central-difference Jacobians."""


class Vertex(abc.ABC):
    """A state variable that is updated by increments in its tangent space."""

    dimension: int = 0

    def __init__(self) -> None:
        self.id = 0
        self.fixed = False
        self._stack: List[Any] = []

    @abc.abstractmethod
    def oplus(self, update: Sequence[float]) -> None:
        """Apply an increment of size :attr:`dimension`."""

    @abc.abstractmethod
    def set_to_origin(self) -> None:
        """Reset the estimate to the origin."""

    @abc.abstractmethod
    def _state(self) -> Any:
        """Return a copy of the estimate."""

    @abc.abstractmethod
    def _restore(self, state: Any) -> None:
        """Restore an estimate returned by :meth:`_state`."""

    def push(self) -> None:
        """Save the current estimate."""
        self._stack.append(self._state())

    def pop(self) -> None:
        """Restore the last saved estimate."""
        self._restore(self._stack.pop())


class LandmarkVertex(Vertex):
    """A 3-D point (or displacement) with additive updates."""

    dimension = 3

    def __init__(self, estimate: Optional[Sequence[float]] = None) -> None:
        super().__init__()
        self.estimate = (np.zeros(3) if estimate is None
                         else np.array(estimate, dtype=np.float64).reshape(3))

    def set_to_origin(self) -> None:
        self.estimate = np.zeros(3)

    def oplus(self, update: Sequence[float]) -> None:
        self.estimate = self.estimate + np.asarray(update, dtype=np.float64).reshape(3)

    def read(self, text: str) -> None:
        """Set the estimate from three whitespace-separated numbers."""
        tokens = text.split()
        if len(tokens) < 3:
            raise ValueError("a landmark needs three coordinates")
        self.estimate = np.array([float(t) for t in tokens[:3]])

    def write(self) -> str:
        """Serialise the estimate, each value followed by a space."""
        return "".join(f"{v:.6g} " for v in self.estimate)

    def _state(self) -> NDArray[np.float64]:
        return self.estimate.copy()

    def _restore(self, state: NDArray[np.float64]) -> None:
        self.estimate = state


def _skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    return np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])


def _nearest_rotation(matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    u, _, vt = np.linalg.svd(matrix)
    rot = u @ vt
    if np.linalg.det(rot) < 0:
        u[:, -1] = -u[:, -1]
        rot = u @ vt
    return rot


def _se3_exp(update: NDArray[np.float64]):
    omega, upsilon = update[:3], update[3:]
    theta = float(np.linalg.norm(omega))
    big_omega = _skew(omega)
    omega2 = big_omega @ big_omega
    eye = np.eye(3)
    if theta < 1e-5:
        rot = eye + big_omega + omega2
        v = rot
    else:
        rot = (eye + np.sin(theta) / theta * big_omega
               + (1 - np.cos(theta)) / theta ** 2 * omega2)
        v = (eye + (1 - np.cos(theta)) / theta ** 2 * big_omega
             + (theta - np.sin(theta)) / theta ** 3 * omega2)
    return _nearest_rotation(rot), v @ upsilon


class PoseVertex(Vertex):
    """A rigid transform (camera from world) updated on the left by the SE(3) exponential.

    Increments are ordered rotation first, then translation.
    """

    dimension = 6

    def __init__(self, rotation: Optional[NDArray] = None,
                 translation: Optional[Sequence[float]] = None) -> None:
        super().__init__()
        self.rotation = np.eye(3) if rotation is None else np.array(rotation, dtype=np.float64)
        if self.rotation.shape != (3, 3):
            raise ValueError("rotation must be a 3x3 matrix")
        self.translation = (np.zeros(3) if translation is None
                            else np.array(translation, dtype=np.float64).reshape(3))

    def set_to_origin(self) -> None:
        self.rotation = np.eye(3)
        self.translation = np.zeros(3)

    def map(self, point: Sequence[float]) -> NDArray[np.float64]:
        """Transform a 3-D point."""
        return self.rotation @ np.asarray(point, dtype=np.float64).reshape(3) + self.translation

    def oplus(self, update: Sequence[float]) -> None:
        step = np.asarray(update, dtype=np.float64).reshape(6)
        rot, trans = _se3_exp(step)
        self.rotation = rot @ self.rotation
        self.translation = rot @ self.translation + trans

    def homogeneous(self) -> NDArray[np.float64]:
        """The 4x4 homogeneous matrix of the transform."""
        out = np.eye(4)
        out[:3, :3] = self.rotation
        out[:3, 3] = self.translation
        return out

    def _state(self):
        return self.rotation.copy(), self.translation.copy()

    def _restore(self, state) -> None:
        self.rotation, self.translation = state


class Edge(abc.ABC):
    """A residual term connecting one or more vertices."""

    dimension: int = 1

    def __init__(self, vertices: Sequence[Vertex] = (), measurement: Any = None,
                 information: Optional[NDArray] = None) -> None:
        self.vertices = tuple(vertices)
        self.measurement = measurement
        self.information = (np.eye(self.dimension) if information is None
                            else np.array(information, dtype=np.float64))
        if self.information.shape != (self.dimension, self.dimension):
            raise ValueError(f"information must be {self.dimension}x{self.dimension}")
        self.error = np.zeros(self.dimension)
        self.jacobians: List[Optional[NDArray[np.float64]]] = [None] * len(self.vertices)
        self.level = 0

    @abc.abstractmethod
    def compute_error(self) -> NDArray[np.float64]:
        """Recompute :attr:`error` from the vertices and return it."""

    def linearize_oplus(self) -> None:
        """Fill :attr:`jacobians` by central differences; fixed vertices get zeros."""
        jacobians: List[Optional[NDArray[np.float64]]] = []
        for vertex in self.vertices:
            jac = np.zeros((self.dimension, vertex.dimension))
            if not vertex.fixed:
                for d in range(vertex.dimension):
                    step = np.zeros(vertex.dimension)
                    step[d] = NUMERIC_DELTA
                    vertex.push()
                    vertex.oplus(step)
                    plus = np.array(self.compute_error(), dtype=np.float64)
                    vertex.pop()
                    vertex.push()
                    vertex.oplus(-step)
                    minus = np.array(self.compute_error(), dtype=np.float64)
                    vertex.pop()
                    jac[:, d] = (plus - minus) / (2 * NUMERIC_DELTA)
            jacobians.append(jac)
        self.jacobians = jacobians
        self.compute_error()

    def chi2(self) -> float:
        """Weighted squared error ``e^T * information * e``."""
        e = np.asarray(self.error, dtype=np.float64).reshape(self.dimension)
        return float(e @ self.information @ e)