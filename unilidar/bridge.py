"""Node that turns lidar data into robot-middleware style messages.

The node reads IMU samples, 3D point clouds and 2D scans from a
:class:`~unilidar.reader.LidarReader` and hands message objects to a publish
callback together with the topic they belong to.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable

from .cloud import POINT_RECORD_FIELDS, PointCloudUnitree, system_timestamp, to_point_records
from .protocol import Lidar2DPointData, LidarImuData, PacketType
from .reader import LidarReader
from .transport import TransportError

TF_TOPIC = "tf"
IMU_TO_LIDAR_TRANSLATION = (0.007698, 0.014655, -0.00667)
IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)
SCAN_RANGE_MIN = 0.0
SCAN_RANGE_MAX = 100.0


class InitializeType(IntEnum):
    SERIAL = 1
    UDP = 2


@dataclass
class NodeConfig:
    """Connection, frame and topic settings of a lidar node."""

    initialize_type: int = InitializeType.SERIAL
    work_mode: int = 0
    range_min: float = 0.0
    range_max: float = 100.0
    use_system_timestamp: bool = True
    cloud_scan_num: int = 18

    serial_port: str = "/dev/ttyACM0"
    baudrate: int = 4000000

    lidar_port: int = 6101
    lidar_ip: str = "10.10.10.10"
    local_port: int = 6201
    local_ip: str = "10.10.10.100"

    cloud_frame: str = "unilidar_lidar"
    cloud_topic: str = "unilidar/cloud"
    imu_frame: str = "unilidar_imu"
    imu_topic: str = "unilidar/imu"
    laserscan_frame: str = "unilidar_lidar"
    laserscan_topic: str = "unilidar/laserscan"

    quaternion_wxyz: bool = True
    publish_laser_scan: bool = True
    hardware_imu_stamp: bool = False

    @classmethod
    def ros1_defaults(cls) -> "NodeConfig":
        """Settings of the first-generation node: serial link, laser scans published."""
        return cls()

    @classmethod
    def ros2_defaults(cls) -> "NodeConfig":
        """Settings of the second-generation node: UDP link, IMU stamped by the lidar."""
        return cls(
            initialize_type=InitializeType.UDP,
            range_max=50.0,
            lidar_ip="192.168.1.2",
            local_ip="192.168.1.62",
            quaternion_wxyz=False,
            publish_laser_scan=False,
            hardware_imu_stamp=True,
        )


@dataclass
class Header:
    stamp: float
    frame_id: str


@dataclass
class ImuMessage:
    header: Header
    orientation: tuple[float, float, float, float]  # x, y, z, w
    angular_velocity: tuple[float, float, float]
    linear_acceleration: tuple[float, float, float]


@dataclass
class TransformMessage:
    header: Header
    child_frame_id: str
    translation: tuple[float, float, float]
    rotation: tuple[float, float, float, float]  # x, y, z, w


@dataclass
class LaserScanMessage:
    header: Header
    angle_min: float
    angle_max: float
    angle_increment: float
    time_increment: float
    range_min: float
    range_max: float
    ranges: list[float] = field(default_factory=list)
    intensities: list[float] = field(default_factory=list)


@dataclass
class CloudMessage:
    header: Header
    points: list[tuple] = field(default_factory=list)
    fields: tuple[str, ...] = POINT_RECORD_FIELDS


def imu_messages(
    imu: LidarImuData,
    config: NodeConfig,
    stamp: float | None = None,
    quaternion_wxyz: bool = True,
) -> tuple[ImuMessage, list[TransformMessage]]:
    """Build the IMU message and the two transforms that follow each sample.

    With ``stamp`` None the IMU message carries the lidar's own stamp and the
    transforms carry the current system time.
    """
    q = tuple(imu.quaternion)
    if quaternion_wxyz:
        orientation = (q[1], q[2], q[3], q[0])
    else:
        orientation = (q[0], q[1], q[2], q[3])

    if stamp is None:
        imu_stamp = imu.info.stamp.sec + imu.info.stamp.nsec / 1.0e9
        tf_stamp = system_timestamp()
    else:
        imu_stamp = tf_stamp = stamp

    message = ImuMessage(
        header=Header(imu_stamp, config.imu_frame),
        orientation=orientation,
        angular_velocity=tuple(imu.angular_velocity),
        linear_acceleration=tuple(imu.linear_acceleration),
    )
    transforms = [
        TransformMessage(
            header=Header(tf_stamp, config.imu_frame + "_initial"),
            child_frame_id=config.imu_frame,
            translation=(0.0, 0.0, 0.0),
            rotation=(q[1], q[2], q[3], q[0]),
        ),
        TransformMessage(
            header=Header(tf_stamp, config.imu_frame),
            child_frame_id=config.cloud_frame,
            translation=IMU_TO_LIDAR_TRANSLATION,
            rotation=IDENTITY_ROTATION,
        ),
    ]
    return message, transforms


def laser_scan_message(
    data: Lidar2DPointData, config: NodeConfig, stamp: float | None = None
) -> LaserScanMessage:
    """Build a laser scan from one 2D scan payload; ranges are scaled to metres."""
    count = min(data.point_num, len(data.ranges))
    scale = data.param.range_scale
    return LaserScanMessage(
        header=Header(system_timestamp() if stamp is None else stamp, config.laserscan_frame),
        angle_min=data.angle_min,
        angle_max=data.angle_min + data.angle_increment * data.point_num,
        angle_increment=data.angle_increment,
        time_increment=data.time_increment,
        range_min=SCAN_RANGE_MIN,
        range_max=SCAN_RANGE_MAX,
        ranges=[raw * scale for raw in data.ranges[:count]],
        intensities=[float(v) for v in data.intensities[:count]],
    )


def cloud_message(cloud: PointCloudUnitree, config: NodeConfig) -> CloudMessage:
    """Build a point cloud message stamped with the cloud's start time."""
    return CloudMessage(
        header=Header(cloud.stamp, config.cloud_frame),
        points=to_point_records(cloud),
    )


def _print_message(topic: str, message) -> None:
    print(f"{topic}: {type(message).__name__} stamp={message.header.stamp:.6f}")


class LidarNode:
    """Connects a reader as configured and publishes whatever it parses."""

    def __init__(
        self,
        config: NodeConfig | None = None,
        reader=None,
        publish: Callable[[str, object], None] | None = None,
    ) -> None:
        self.config = config if config is not None else NodeConfig.ros1_defaults()
        try:
            kind = InitializeType(self.config.initialize_type)
        except ValueError:
            raise ValueError(
                f"initialize_type is not right: {self.config.initialize_type}"
            ) from None
        self.reader = reader if reader is not None else LidarReader()
        self.publish = publish if publish is not None else _print_message

        cfg = self.config
        if kind is InitializeType.SERIAL:
            self.reader.initialize_serial(
                cfg.serial_port, cfg.baudrate, cfg.cloud_scan_num,
                cfg.use_system_timestamp, cfg.range_min, cfg.range_max,
            )
        else:
            self.reader.initialize_udp(
                cfg.lidar_port, cfg.lidar_ip, cfg.local_port, cfg.local_ip,
                cfg.cloud_scan_num, cfg.use_system_timestamp, cfg.range_min, cfg.range_max,
            )
        self.reader.set_work_mode(cfg.work_mode)

    def run_once(self) -> bool:
        """Parse once and publish the result; True if a data packet was handled."""
        cfg = self.config
        result = self.reader.run_parse()
        if result == PacketType.IMU_DATA:
            imu = self.reader.imu_data()
            if imu is not None:
                stamp = None if cfg.hardware_imu_stamp else system_timestamp()
                message, transforms = imu_messages(imu, cfg, stamp, cfg.quaternion_wxyz)
                self.publish(cfg.imu_topic, message)
                for transform in transforms:
                    self.publish(TF_TOPIC, transform)
            return True
        if result == PacketType.POINT_DATA:
            cloud = self.reader.point_cloud()
            if cloud is not None:
                self.publish(cfg.cloud_topic, cloud_message(cloud, cfg))
            return True
        if result == PacketType.POINT_2D_DATA and cfg.publish_laser_scan:
            data = self.reader.point_data_2d
            if data is not None:
                self.publish(cfg.laserscan_topic, laser_scan_message(data, cfg))
            return True
        return False

    def spin(self, should_continue: Callable[[], bool] | None = None) -> int:
        """Run until ``should_continue()`` is false (forever if None); return packets handled."""
        handled = 0
        while should_continue is None or should_continue():
            if self.run_once():
                handled += 1
        return handled

    def close(self) -> None:
        self.reader.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="unilidar-node", description="Publish lidar data.")
    parser.add_argument("--ros2", action="store_true", help="use second-generation defaults")
    parser.add_argument("--initialize-type", type=int)
    parser.add_argument("--work-mode", type=int)
    parser.add_argument("--range-min", type=float)
    parser.add_argument("--range-max", type=float)
    parser.add_argument("--cloud-scan-num", type=int)
    parser.add_argument("--serial-port")
    parser.add_argument("--baudrate", type=int)
    parser.add_argument("--lidar-port", type=int)
    parser.add_argument("--lidar-ip")
    parser.add_argument("--local-port", type=int)
    parser.add_argument("--local-ip")
    parser.add_argument("--cloud-frame")
    parser.add_argument("--cloud-topic")
    parser.add_argument("--imu-frame")
    parser.add_argument("--imu-topic")
    parser.add_argument("--laserscan-frame")
    parser.add_argument("--laserscan-topic")
    return parser


def main(argv=None) -> int:
    """Start a node with defaults overridden from the command line."""
    args = _build_parser().parse_args(argv)
    config = NodeConfig.ros2_defaults() if args.ros2 else NodeConfig.ros1_defaults()
    for name, value in vars(args).items():
        if name != "ros2" and value is not None:
            setattr(config, name, value)

    print(f"initialize_type_ = {config.initialize_type}")
    try:
        node = LidarNode(config)
    except ValueError:
        print("initialize_type is not right! exit now ...")
        return 0
    except TransportError as exc:
        print(f"Unilidar initialization failed: {exc}", file=sys.stderr)
        return 1
    try:
        node.spin()
    except KeyboardInterrupt:
        pass
    finally:
        node.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())