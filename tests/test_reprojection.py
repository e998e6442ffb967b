import numpy as np
import pytest

from deformslam.optimization.graph import Edge, LandmarkVertex, PoseVertex
from deformslam.optimization.reprojection import (
    ReprojectionError,
    ReprojectionErrorOnlyDeformation,
    ReprojectionErrorOnlyPose,
    ReprojectionErrorWithDeformation,
    pose_jacobian,
)


class Pinhole:
    def __init__(self, fx=500.0, fy=480.0, cx=320.0, cy=240.0):
        self.fx, self.fy, self.cx, self.cy = fx, fy, cx, cy

    def project(self, point):
        x, y, z = point
        return np.array([self.fx * x / z + self.cx, self.fy * y / z + self.cy])

    def projection_jacobian(self, point):
        x, y, z = point
        return np.array([
            [self.fx / z, 0.0, -self.fx * x / (z * z)],
            [0.0, self.fy / z, -self.fy * y / (z * z)],
        ])


def _pose():
    angle = 0.2
    rotation = np.array([
        [np.cos(angle), 0.0, np.sin(angle)],
        [0.0, 1.0, 0.0],
        [-np.sin(angle), 0.0, np.cos(angle)],
    ])
    return PoseVertex(rotation, [0.1, -0.2, 0.5])


def _numeric(edge):
    Edge.linearize_oplus(edge)
    return [j.copy() for j in edge.jacobians]


def _assert_analytic_matches(edge):
    numeric = _numeric(edge)
    edge.linearize_oplus()
    assert len(edge.jacobians) == len(numeric)
    for analytic, approx in zip(edge.jacobians, numeric):
        assert np.allclose(analytic, approx, rtol=1e-4, atol=1e-4)


def test_pose_jacobian_layout():
    jac = pose_jacobian([1.0, 2.0, 3.0])
    assert np.array_equal(jac, np.array([
        [0.0, 3.0, -2.0, 1.0, 0.0, 0.0],
        [-3.0, 0.0, 1.0, 0.0, 1.0, 0.0],
        [2.0, -1.0, 0.0, 0.0, 0.0, 1.0],
    ]))


def test_reprojection_error_zero_at_projection():
    camera = Pinhole()
    pose = _pose()
    landmark = LandmarkVertex([0.3, 0.2, 2.0])
    measurement = camera.project(pose.map(landmark.estimate))
    edge = ReprojectionError(pose, landmark, measurement, camera)
    assert np.allclose(edge.compute_error(), np.zeros(2))


def test_reprojection_error_jacobians_match_numeric():
    camera = Pinhole()
    edge = ReprojectionError(_pose(), LandmarkVertex([0.3, 0.2, 2.0]), [300.0, 250.0], camera)
    _assert_analytic_matches(edge)


def test_only_deformation_error_sign():
    camera = Pinhole()
    landmark = LandmarkVertex([0.4, -0.1, 3.0])
    offset = np.array([1.0, -2.0])
    measurement = camera.project(landmark.estimate) + offset
    edge = ReprojectionErrorOnlyDeformation(landmark, measurement, camera)
    assert np.allclose(edge.compute_error(), offset)


def test_only_deformation_chi2_uses_information():
    camera = Pinhole()
    landmark = LandmarkVertex([0.4, -0.1, 3.0])
    measurement = camera.project(landmark.estimate) + np.array([1.0, -2.0])
    edge = ReprojectionErrorOnlyDeformation(landmark, measurement, camera, np.eye(2) * 4.0)
    edge.compute_error()
    assert edge.chi2() == pytest.approx(20.0)


def test_only_pose_jacobian_matches_numeric():
    edge = ReprojectionErrorOnlyPose(_pose(), [310.0, 230.0], [0.2, 0.1, 2.5], Pinhole())
    _assert_analytic_matches(edge)


def test_only_pose_error_agrees_with_full_edge():
    camera = Pinhole()
    world = [0.2, 0.1, 2.5]
    only_pose = ReprojectionErrorOnlyPose(_pose(), [310.0, 230.0], world, camera)
    full = ReprojectionError(_pose(), LandmarkVertex(world), [310.0, 230.0], camera)
    assert np.allclose(only_pose.compute_error(), full.compute_error())


def test_only_pose_without_calibration_raises():
    edge = ReprojectionErrorOnlyPose(PoseVertex(), [1.0, 2.0], [0.0, 0.0, 1.0])
    with pytest.raises(ValueError):
        edge.compute_error()


def test_only_pose_write_format():
    edge = ReprojectionErrorOnlyPose(PoseVertex(), [1.5, 2.0])
    assert edge.write() == "1.5 2  1 0 1"


def test_only_pose_read_write_round_trip():
    source = ReprojectionErrorOnlyPose(PoseVertex(), [12.25, -3.5],
                                       information=[[2.0, 0.5], [0.5, 3.0]])
    target = ReprojectionErrorOnlyPose(PoseVertex())
    target.read(source.write())
    assert np.allclose(target.measurement, source.measurement)
    assert np.allclose(target.information, source.information)
    assert target.information[1, 0] == target.information[0, 1]


def test_only_pose_read_rejects_short_input():
    edge = ReprojectionErrorOnlyPose(PoseVertex())
    with pytest.raises(ValueError):
        edge.read("1 2 3")


def test_with_deformation_equals_displaced_landmark():
    camera = Pinhole()
    rest = np.array([0.3, -0.2, 2.2])
    displacement = np.array([0.05, 0.1, -0.2])
    deformed = ReprojectionErrorWithDeformation(_pose(), LandmarkVertex(displacement),
                                                [320.0, 240.0], rest, camera)
    plain = ReprojectionError(_pose(), LandmarkVertex(rest + displacement),
                              [320.0, 240.0], camera)
    assert np.allclose(deformed.compute_error(), plain.compute_error())


def test_with_deformation_jacobians_match_numeric():
    edge = ReprojectionErrorWithDeformation(_pose(), LandmarkVertex([0.05, 0.1, -0.2]),
                                            [330.0, 245.0], [0.3, -0.2, 2.2], Pinhole())
    _assert_analytic_matches(edge)


def test_rejects_wrong_vertex_types():
    with pytest.raises(TypeError):
        ReprojectionError(LandmarkVertex(), LandmarkVertex(), [0.0, 0.0], Pinhole())