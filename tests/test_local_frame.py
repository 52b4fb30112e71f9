import pytest

from local_frame import LocalTransform, Vec3, rotate_about_up


def assert_vec(actual: Vec3, expected: Vec3):
    assert actual.as_tuple() == pytest.approx(expected.as_tuple(), abs=1e-9)


def test_identity_faces_negative_z():
    assert_vec(LocalTransform.identity().forward, Vec3(0.0, 0.0, -1.0))


def test_positive_yaw_turns_clockwise():
    assert_vec(LocalTransform(yaw_degrees=90.0).forward, Vec3(1.0, 0.0, 0.0))
    assert_vec(LocalTransform(yaw_degrees=-90.0).forward, Vec3(-1.0, 0.0, 0.0))


def test_rotation_keeps_height_and_length():
    rotated = rotate_about_up(Vec3(3.0, 2.0, 4.0), 33.0)
    assert rotated.y == 2.0
    assert rotated.with_y(0.0).length == pytest.approx(5.0)


def test_lerp_and_arithmetic():
    start = Vec3(0.0, 0.0, -1000.0)
    end = Vec3(0.0, 0.0, -500.0)
    assert_vec(start.lerp(end, 0.1), Vec3(0.0, 0.0, -950.0))
    assert_vec(end - start, Vec3(0.0, 0.0, 500.0))
    assert_vec((start + end).scale(0.5), Vec3(0.0, 0.0, -750.0))
    assert Vec3().normalized() == Vec3()
    assert Vec3(0.0, 3.0, 4.0).normalized().length == pytest.approx(1.0)
