import pytest

from unilidar.bridge import (
    CloudMessage,
    ImuMessage,
    InitializeType,
    LaserScanMessage,
    LidarNode,
    NodeConfig,
    TransformMessage,
    cloud_message,
    imu_messages,
    laser_scan_message,
    main,
)
from unilidar.cloud import PointCloudUnitree, PointUnitree
from unilidar.protocol import (
    DataInfo,
    Lidar2DPointData,
    LidarCalibParam,
    LidarImuData,
    PacketType,
    TimeStamp,
)


class FakeReader:
    def __init__(self, results=(), imu=None, cloud=None, data_2d=None):
        self.results = list(results)
        self.imu = imu
        self.cloud = cloud
        self.point_data_2d = data_2d
        self.calls = []

    def initialize_serial(self, *args):
        self.calls.append(("serial", args))

    def initialize_udp(self, *args):
        self.calls.append(("udp", args))

    def set_work_mode(self, mode):
        self.calls.append(("mode", mode))

    def run_parse(self):
        return self.results.pop(0) if self.results else 0

    def imu_data(self):
        return self.imu

    def point_cloud(self):
        return self.cloud

    def close(self):
        self.calls.append(("close",))


def _imu():
    return LidarImuData(
        info=DataInfo(seq=3, stamp=TimeStamp(5, 0)),
        quaternion=(1.0, 2.0, 3.0, 4.0),
        angular_velocity=(0.5, 0.25, 0.125),
        linear_acceleration=(9.0, 8.0, 7.0),
    )


def _collector():
    published = []
    return published, lambda topic, msg: published.append((topic, msg))


def test_ros1_defaults():
    cfg = NodeConfig.ros1_defaults()
    assert cfg.initialize_type == InitializeType.SERIAL
    assert cfg.lidar_ip == "10.10.10.10"
    assert cfg.local_ip == "10.10.10.100"
    assert cfg.range_max == 100.0
    assert cfg.laserscan_topic == "unilidar/laserscan"
    assert cfg.quaternion_wxyz is True


def test_ros2_defaults():
    cfg = NodeConfig.ros2_defaults()
    assert cfg.initialize_type == InitializeType.UDP
    assert cfg.lidar_ip == "192.168.1.2"
    assert cfg.local_ip == "192.168.1.62"
    assert cfg.range_max == 50.0
    assert cfg.publish_laser_scan is False


def test_imu_messages_wxyz_order():
    cfg = NodeConfig.ros1_defaults()
    msg, transforms = imu_messages(_imu(), cfg, stamp=12.0, quaternion_wxyz=True)
    assert isinstance(msg, ImuMessage)
    assert msg.orientation == (2.0, 3.0, 4.0, 1.0)
    assert msg.header.frame_id == "unilidar_imu"
    assert msg.header.stamp == 12.0
    assert msg.angular_velocity == (0.5, 0.25, 0.125)
    first, second = transforms
    assert first.header.frame_id == "unilidar_imu_initial"
    assert first.child_frame_id == "unilidar_imu"
    assert first.rotation == (2.0, 3.0, 4.0, 1.0)
    assert second.header.frame_id == "unilidar_imu"
    assert second.child_frame_id == "unilidar_lidar"
    assert second.translation == (0.007698, 0.014655, -0.00667)
    assert second.rotation == (0.0, 0.0, 0.0, 1.0)


def test_imu_messages_xyzw_uses_hardware_stamp():
    cfg = NodeConfig.ros2_defaults()
    msg, transforms = imu_messages(_imu(), cfg, stamp=None, quaternion_wxyz=False)
    assert msg.orientation == (1.0, 2.0, 3.0, 4.0)
    assert msg.header.stamp == 5.0
    assert transforms[0].rotation == (2.0, 3.0, 4.0, 1.0)
    assert all(isinstance(t, TransformMessage) for t in transforms)


def test_laser_scan_message():
    data = Lidar2DPointData(
        param=LidarCalibParam(range_scale=1.0),
        angle_min=0.0,
        angle_increment=0.5,
        time_increment=0.001,
        point_num=4,
        ranges=(10, 20, 0, 40),
        intensities=(1, 2, 3, 4),
    )
    scan = laser_scan_message(data, NodeConfig.ros1_defaults(), stamp=1.0)
    assert isinstance(scan, LaserScanMessage)
    assert scan.ranges == [10.0, 20.0, 0.0, 40.0]
    assert scan.intensities == [1.0, 2.0, 3.0, 4.0]
    assert scan.angle_max == pytest.approx(2.0)
    assert (scan.range_min, scan.range_max) == (0.0, 100.0)
    assert scan.header.frame_id == "unilidar_lidar"


def test_cloud_message():
    cloud = PointCloudUnitree(
        stamp=7.25, id=1, ring_num=1,
        points=[PointUnitree(1.0, 2.0, 3.0, 4.0, 0.5, 1), PointUnitree(5.0, 6.0, 7.0, 8.0, 0.6, 1)],
    )
    msg = cloud_message(cloud, NodeConfig.ros1_defaults())
    assert isinstance(msg, CloudMessage)
    assert msg.header.stamp == 7.25
    assert msg.header.frame_id == "unilidar_lidar"
    assert len(msg.points) == len(cloud.points)
    assert msg.points[0][:3] == (1.0, 2.0, 3.0)


def test_node_initializes_serial_and_sets_mode():
    reader = FakeReader()
    cfg = NodeConfig.ros1_defaults()
    cfg.work_mode = 8
    LidarNode(cfg, reader=reader, publish=lambda t, m: None)
    assert reader.calls[0] == ("serial", ("/dev/ttyACM0", 4000000, 18, True, 0.0, 100.0))
    assert reader.calls[1] == ("mode", 8)


def test_node_initializes_udp():
    reader = FakeReader()
    LidarNode(NodeConfig.ros2_defaults(), reader=reader, publish=lambda t, m: None)
    kind, args = reader.calls[0]
    assert kind == "udp"
    assert args[:4] == (6101, "192.168.1.2", 6201, "192.168.1.62")


def test_node_rejects_bad_initialize_type():
    cfg = NodeConfig(initialize_type=3)
    with pytest.raises(ValueError):
        LidarNode(cfg, reader=FakeReader())


def test_run_once_publishes_imu_and_transforms():
    published, publish = _collector()
    reader = FakeReader(results=[PacketType.IMU_DATA], imu=_imu())
    node = LidarNode(NodeConfig.ros1_defaults(), reader=reader, publish=publish)
    assert node.run_once() is True
    topics = [topic for topic, _ in published]
    assert topics == ["unilidar/imu", "tf", "tf"]


def test_run_once_publishes_cloud_and_idles():
    published, publish = _collector()
    cloud = PointCloudUnitree(stamp=1.0, id=1, ring_num=1, points=[PointUnitree()])
    reader = FakeReader(results=[PacketType.POINT_DATA, 0], cloud=cloud)
    node = LidarNode(NodeConfig.ros1_defaults(), reader=reader, publish=publish)
    assert node.run_once() is True
    assert node.run_once() is False
    assert [topic for topic, _ in published] == ["unilidar/cloud"]


def test_laser_scan_only_in_ros1_flavour():
    data = Lidar2DPointData(param=LidarCalibParam(range_scale=1.0), point_num=1, ranges=(5,))
    published, publish = _collector()
    reader = FakeReader(results=[PacketType.POINT_2D_DATA], data_2d=data)
    node = LidarNode(NodeConfig.ros2_defaults(), reader=reader, publish=publish)
    assert node.run_once() is False
    assert published == []

    reader = FakeReader(results=[PacketType.POINT_2D_DATA], data_2d=data)
    node = LidarNode(NodeConfig.ros1_defaults(), reader=reader, publish=publish)
    assert node.run_once() is True
    assert published[0][0] == "unilidar/laserscan"


def test_spin_stops_and_counts():
    reader = FakeReader(results=[PacketType.IMU_DATA, 0, PacketType.IMU_DATA], imu=_imu())
    node = LidarNode(NodeConfig.ros1_defaults(), reader=reader, publish=lambda t, m: None)
    remaining = iter([True, True, True, False])
    assert node.spin(lambda: next(remaining)) == 2


def test_main_bad_initialize_type(capsys):
    assert main(["--initialize-type", "3"]) == 0
    assert "initialize_type is not right! exit now ..." in capsys.readouterr().out