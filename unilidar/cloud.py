"""Conversion of scan packets into point clouds."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field

from .protocol import Lidar2DPointData, LidarPointData, TimeStamp

DEGREE_TO_RADIAN = math.pi / 180.0
RADIAN_TO_DEGREE = 180.0 / math.pi

POINT_RECORD_FIELDS = ("x", "y", "z", "intensity", "ring", "time")


@dataclass
class PointUnitree:
    """A single point; ``time`` is relative to the cloud stamp."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    intensity: float = 0.0
    time: float = 0.0
    ring: int = 1


@dataclass
class PointCloudUnitree:
    """A point cloud with its start stamp, sequence id and ring count."""

    stamp: float = 0.0
    id: int = 0
    ring_num: int = 0
    points: list[PointUnitree] = field(default_factory=list)


def system_timestamp() -> float:
    """Current wall-clock time in seconds."""
    return time.time_ns() / 1e9


def system_timestamp_parts() -> TimeStamp:
    """Current wall-clock time split into seconds and nanoseconds."""
    sec, nsec = divmod(time.time_ns(), 1_000_000_000)
    return TimeStamp(sec, nsec)


def _cloud_stamp(data, use_system_timestamp: bool) -> float:
    if use_system_timestamp:
        return system_timestamp() - data.scan_period
    return data.info.stamp.sec + data.info.stamp.nsec / 1.0e9


def _valid_samples(data, range_min: float, range_max: float):
    """Yield ``(index, range_in_m, intensity)`` for samples within all limits."""
    count = min(data.point_num, len(data.ranges))
    param = data.param
    for j, (raw, intensity) in enumerate(zip(data.ranges[:count], data.intensities[:count])):
        if raw < 1:
            continue
        distance = param.range_scale * (raw + param.range_bias)
        if distance < data.range_min or distance > data.range_max:
            continue
        if distance < range_min or distance > range_max:
            continue
        yield j, distance, intensity


def parse_point_cloud(
    data: LidarPointData,
    use_system_timestamp: bool = True,
    range_min: float = 0.0,
    range_max: float = 100.0,
) -> PointCloudUnitree:
    """Turn one 3D point data payload into a cloud of XYZ points."""
    param = data.param
    sin_beta, cos_beta = math.sin(param.beta_angle), math.cos(param.beta_angle)
    sin_xi, cos_xi = math.sin(param.xi_angle), math.cos(param.xi_angle)
    cos_beta_sin_xi = cos_beta * sin_xi
    sin_beta_cos_xi = sin_beta * cos_xi
    sin_beta_sin_xi = sin_beta * sin_xi
    cos_beta_cos_xi = cos_beta * cos_xi

    alpha_start = data.angle_min + param.alpha_angle_bias
    theta_start = data.com_horizontal_angle_start + param.theta_angle_bias

    cloud = PointCloudUnitree(stamp=_cloud_stamp(data, use_system_timestamp), id=1, ring_num=1)
    for j, distance, intensity in _valid_samples(data, range_min, range_max):
        alpha = alpha_start + j * data.angle_increment
        theta = theta_start + j * data.com_horizontal_angle_step
        sin_alpha, cos_alpha = math.sin(alpha), math.cos(alpha)
        sin_theta, cos_theta = math.sin(theta), math.cos(theta)

        a = (-cos_beta_sin_xi + sin_beta_cos_xi * sin_alpha) * distance + param.b_axis_dist
        b = cos_alpha * cos_xi * distance
        c = (sin_beta_sin_xi + cos_beta_cos_xi * sin_alpha) * distance

        cloud.points.append(
            PointUnitree(
                x=cos_theta * a - sin_theta * b,
                y=sin_theta * a + cos_theta * b,
                z=c + param.a_axis_dist,
                intensity=float(intensity),
                time=j * data.time_increment,
                ring=1,
            )
        )
    return cloud


def parse_point_cloud_2d(
    data: Lidar2DPointData,
    use_system_timestamp: bool = True,
    range_min: float = 0.0,
    range_max: float = 100.0,
) -> PointCloudUnitree:
    """Turn one 2D scan payload into points in the lidar's Y-Z plane."""
    param = data.param
    alpha_start = data.angle_min + param.alpha_angle_bias

    cloud = PointCloudUnitree(stamp=_cloud_stamp(data, use_system_timestamp), id=1, ring_num=1)
    for j, distance, intensity in _valid_samples(data, range_min, range_max):
        alpha = alpha_start + j * data.angle_increment
        cloud.points.append(
            PointUnitree(
                x=0.0,
                y=math.cos(alpha) * distance,
                z=math.sin(alpha) * distance + param.a_axis_dist,
                intensity=float(intensity),
                time=j * data.time_increment,
                ring=1,
            )
        )
    return cloud


def to_point_records(cloud: PointCloudUnitree) -> list[tuple]:
    """Flatten a cloud into ``(x, y, z, intensity, ring, time)`` records.

    The ring is stored in 16 bits, as in common point cloud layouts.
    """
    return [
        (p.x, p.y, p.z, p.intensity, p.ring & 0xFFFF, p.time)
        for p in cloud.points
    ]