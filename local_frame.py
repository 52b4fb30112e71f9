"""Local 3D frame used to place geo positions in AR space.

The frame is right-handed with +Y up. A yaw of zero faces -Z; positive yaw
turns clockwise when viewed from above.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Vec3:
    """Minimal immutable 3D vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scale(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    @property
    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self) -> "Vec3":
        length = self.length
        if length == 0.0:
            return self
        return self.scale(1.0 / length)

    def with_y(self, y: float) -> "Vec3":
        return Vec3(self.x, y, self.z)

    def lerp(self, target: "Vec3", t: float) -> "Vec3":
        """Linear interpolation towards ``target``."""
        return Vec3(
            self.x + (target.x - self.x) * t,
            self.y + (target.y - self.y) * t,
            self.z + (target.z - self.z) * t,
        )

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


def rotate_about_up(vector: Vec3, degrees: float) -> Vec3:
    """Rotate ``vector`` around +Y by ``degrees`` (right-handed, anticlockwise from above)."""
    radians = math.radians(degrees)
    cos_a = math.cos(radians)
    sin_a = math.sin(radians)
    return Vec3(
        vector.x * cos_a + vector.z * sin_a,
        vector.y,
        -vector.x * sin_a + vector.z * cos_a,
    )


@dataclass(frozen=True)
class LocalTransform:
    """Position and heading of a pose in the local frame."""

    position: Vec3 = Vec3()
    yaw_degrees: float = 0.0

    @property
    def forward(self) -> Vec3:
        """Horizontal unit vector the pose is facing."""
        return rotate_about_up(Vec3(0.0, 0.0, -1.0), -self.yaw_degrees)

    @classmethod
    def identity(cls) -> "LocalTransform":
        return cls()


__all__ = ["Vec3", "LocalTransform", "rotate_about_up"]
