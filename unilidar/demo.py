"""Walk-through of a connected lidar: versions, rotation, health and live data."""

from __future__ import annotations

import sys
import time

from .cloud import PointCloudUnitree, system_timestamp
from .protocol import LidarImuData, PacketType


def _vector(values) -> str:
    return "[" + ", ".join(f"{v:.4f}" for v in values) + "]"


def format_imu(imu: LidarImuData) -> str:
    """Describe one IMU sample in the report layout."""
    lines = [
        "An IMU msg is parsed!",
        f"\tsystem stamp = {system_timestamp()!r}",
        f"\tseq = {imu.info.seq}, stamp = {imu.info.stamp.sec}.{imu.info.stamp.nsec}",
        f"\tquaternion (x, y, z, w) = {_vector(imu.quaternion)}",
        f"\tangular_velocity (x, y, z) = {_vector(imu.angular_velocity)}",
        f"\tlinear_acceleration (x, y, z) = {_vector(imu.linear_acceleration)}",
    ]
    return "\n".join(lines)


def format_cloud(cloud: PointCloudUnitree, limit: int = 10) -> str:
    """Describe a cloud and its first ``limit`` points."""
    if limit < 0:
        raise ValueError(f"limit must not be negative, got {limit}")
    lines = [
        "A Cloud msg is parsed! ",
        f"\tstamp = {cloud.stamp:f}, id = {cloud.id}",
        f"\tcloud size  = {len(cloud.points)}, ringNum = {cloud.ring_num}",
        f"\tfirst {limit} points (x,y,z,intensity,time,ring) = ",
    ]
    lines.extend(
        f"\t  ({p.x:f}, {p.y:f}, {p.z:f}, {p.intensity:f}, {p.time:f}, {p.ring})"
        for p in cloud.points[:limit]
    )
    lines.append("\t  ...")
    return "\n".join(lines)


def wait_for(reader, query):
    """Keep parsing until ``query()`` returns something other than None; return it."""
    while (value := query()) is None:
        reader.run_parse()
    return value


def example_process(reader, out=None, sleep=None) -> None:
    """Report versions, cycle the rotation, report health, then print data forever."""
    out = sys.stdout if out is None else out
    sleep = time.sleep if sleep is None else sleep

    firmware = wait_for(reader, reader.firmware_version)
    hardware = reader.hardware_version()
    sdk = reader.sdk_version()
    print(f"lidar hardware version = {hardware}", file=out)
    print(f"lidar firmware version = {firmware}", file=out)
    print(f"lidar sdk version = {sdk}", file=out)
    sleep(1)

    print("stop lidar rotation ...", file=out)
    reader.stop_rotation()
    sleep(3)

    print("start lidar rotation ...", file=out)
    reader.start_rotation()
    sleep(3)

    dirty = wait_for(reader, reader.dirty_percentage)
    print(f"dirty percentage = {dirty:f} %", file=out)
    sleep(1)

    delay = wait_for(reader, reader.time_delay)
    print(f"time delay (second) = {delay:f}", file=out)
    sleep(1)

    while True:
        result = reader.run_parse()
        if result == PacketType.IMU_DATA:
            imu = reader.imu_data()
            if imu is not None:
                print(format_imu(imu), file=out)
        elif result == PacketType.POINT_DATA:
            cloud = reader.point_cloud()
            if cloud is not None:
                print(format_cloud(cloud), file=out)