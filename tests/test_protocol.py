import ipaddress

import pytest

from unilidar.protocol import (
    FRAME_HEADER,
    FRAME_TAIL,
    HEADER_SIZE,
    TAIL_SIZE,
    AckStatus,
    DataInfo,
    Frame,
    FrameError,
    Lidar2DPointData,
    LidarAckData,
    LidarCalibParam,
    LidarImuData,
    LidarInsideState,
    LidarIpAddressConfig,
    LidarMacAddressConfig,
    LidarPointData,
    LidarUserCtrlCmd,
    LidarVersionData,
    LidarWorkModeConfig,
    PacketType,
    TimeStamp,
    UserCommand,
    crc32,
    decode_frame,
    encode_frame,
    payload_class,
)


def test_crc32_standard_check_value():
    assert crc32(b"123456789") == 0xCBF43926


def test_crc32_of_empty_input():
    assert crc32(b"") == 0


def test_encoded_user_command_wire_bytes():
    frame = encode_frame(PacketType.USER_CMD, LidarUserCtrlCmd(UserCommand.STANDBY, 1))
    assert frame[:20] == bytes.fromhex("55aa050a640000002000000002000000" "01000000")
    assert frame[-2:] == FRAME_TAIL
    assert frame[-4:-2] == b"\0\0"


@pytest.mark.parametrize(
    "packet_type, payload, size",
    [
        (PacketType.USER_CMD, LidarUserCtrlCmd(), 32),
        (PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(), 28),
        (PacketType.TIME_STAMP, TimeStamp(), 32),
        (PacketType.ACK_DATA, LidarAckData(), 40),
        (PacketType.VERSION, LidarVersionData(), 104),
        (PacketType.MAC_ADDRESS_CONFIG, LidarMacAddressConfig(bytes(6)), 32),
    ],
)
def test_packet_sizes(packet_type, payload, size):
    assert len(encode_frame(packet_type, payload)) == size


def test_frame_size_field_matches_length():
    frame = encode_frame(PacketType.IMU_DATA, LidarImuData())
    assert frame[:4] == FRAME_HEADER
    assert int.from_bytes(frame[8:12], "little") == len(frame)
    assert len(frame) == HEADER_SIZE + LidarImuData.SIZE + TAIL_SIZE


def test_frame_round_trip():
    cmd = LidarUserCtrlCmd(UserCommand.RESET, 1)
    frame = decode_frame(encode_frame(PacketType.USER_CMD, cmd, msg_type_check=7))
    assert frame == Frame(PacketType.USER_CMD, cmd.pack(), 7)
    assert frame.decode_payload() == cmd


def test_encode_accepts_raw_bytes():
    frame = decode_frame(encode_frame(PacketType.COMMAND, b"\x01\x02\x03"))
    assert frame.packet_type == PacketType.COMMAND
    assert frame.payload == b"\x01\x02\x03"


def test_decode_rejects_bad_header():
    data = bytearray(encode_frame(PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(8)))
    data[0] = 0x00
    with pytest.raises(FrameError):
        decode_frame(data)


def test_decode_rejects_bad_crc():
    data = bytearray(encode_frame(PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(8)))
    data[HEADER_SIZE] ^= 0xFF
    with pytest.raises(FrameError, match="CRC"):
        decode_frame(data)


def test_decode_rejects_bad_tail():
    data = bytearray(encode_frame(PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(8)))
    data[-1] = 0x00
    with pytest.raises(FrameError, match="tail"):
        decode_frame(data)


def test_decode_rejects_truncated_frame():
    data = encode_frame(PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(8))
    with pytest.raises(FrameError):
        decode_frame(data[:-1])
    with pytest.raises(FrameError):
        decode_frame(data[:10])


@pytest.mark.parametrize(
    "obj",
    [
        TimeStamp(12, 500),
        DataInfo(3, 1020, TimeStamp(1, 2)),
        LidarCalibParam(0.5, 0.25, 1.5, -0.5, 2.0, 0.125, 3.0, 0.001953125),
        LidarInsideState(100, 200, 0.5, 0.25, 0.0, 40.5, 12.0, 5.5, 33.25),
        LidarAckData(PacketType.USER_CMD, UserCommand.RESET, 1, AckStatus.SUCCESS),
        LidarUserCtrlCmd(UserCommand.LATENCY, 9),
        LidarWorkModeConfig(4),
        LidarVersionData(b"\x01\x02\x03\x04", b"\x05\x06\x07\x08", b"L2", b"20240101"),
        LidarMacAddressConfig(b"\x02\x00\x00\x00\x00\x01"),
        LidarIpAddressConfig("192.168.123.110", "192.168.123.120"),
        LidarImuData(DataInfo(1), (1.0, 0.0, 0.0, 0.5), (0.25, 0.5, 0.75), (9.5, 0.0, -1.0)),
    ],
)
def test_structures_round_trip(obj):
    packed = obj.pack()
    assert len(packed) == type(obj).SIZE
    assert type(obj).unpack(packed) == obj


def test_point_data_round_trip_and_padding():
    data = LidarPointData(
        info=DataInfo(5, 0, TimeStamp(10, 20)),
        param=LidarCalibParam(range_scale=0.5),
        scan_period=0.25,
        angle_increment=0.5,
        point_num=3,
        ranges=[100, 200, 300],
        intensities=[1, 2, 3],
    )
    assert len(data.ranges) == 300
    assert data.ranges[:4] == (100, 200, 300, 0)
    restored = LidarPointData.unpack(data.pack())
    assert restored == data
    assert restored.pack() == data.pack()


def test_point_data_rejects_too_many_ranges():
    with pytest.raises(ValueError):
        LidarPointData(ranges=[1] * 301)


def test_point_2d_data_round_trip():
    data = Lidar2DPointData(point_num=2, ranges=[7, 8], intensities=[9, 10], range_max=50.0)
    restored = Lidar2DPointData.unpack(data.pack())
    assert restored == data
    assert restored.ranges[:3] == (7, 8, 0)
    assert len(restored.intensities) == 1800


def test_unpack_rejects_wrong_size():
    with pytest.raises(FrameError):
        LidarPointData.unpack(b"\0" * 10)
    with pytest.raises(FrameError):
        TimeStamp.unpack(b"\0" * 9)


def test_pack_rejects_out_of_range_value():
    with pytest.raises(ValueError):
        LidarWorkModeConfig(2**32).pack()


def test_imu_requires_exact_component_counts():
    with pytest.raises(ValueError):
        LidarImuData(quaternion=(1.0, 0.0, 0.0))


def test_version_strings():
    version = LidarVersionData(b"\x01\x02\x03\x04", b"\x05\x06\x07\x08", b"L2")
    assert version.hardware_version() == "1.2.3.4"
    assert version.firmware_version() == "5.6.7.8"
    assert version.device_name == "L2"


def test_version_rejects_long_name():
    with pytest.raises(ValueError):
        LidarVersionData(name=b"x" * 25)


def test_ip_config_pack_layout():
    config = LidarIpAddressConfig("192.168.123.110", "192.168.123.120", lidar_port=6101)
    packed = config.pack()
    assert packed[:4] == bytes([192, 168, 123, 110])
    assert packed[4:8] == bytes([192, 168, 123, 120])
    assert packed[16:18] == (6101).to_bytes(2, "little")
    assert config.lidar_ip == ipaddress.IPv4Address("192.168.123.110")


def test_mac_config_from_text():
    config = LidarMacAddressConfig("02:00:00:00:00:01")
    assert config.mac == b"\x02\x00\x00\x00\x00\x01"
    assert str(config) == "02:00:00:00:00:01"
    with pytest.raises(ValueError):
        LidarMacAddressConfig("02:00:00")


def test_payload_class_lookup():
    assert payload_class(PacketType.POINT_DATA) is LidarPointData
    assert payload_class(104) is LidarImuData
    with pytest.raises(FrameError):
        payload_class(PacketType.PARAM_DATA)
    with pytest.raises(FrameError):
        payload_class(9999)


def test_decode_payload_of_point_frame():
    data = LidarPointData(point_num=1, ranges=[42], intensities=[7])
    frame = decode_frame(encode_frame(PacketType.POINT_DATA, data))
    decoded = frame.decode_payload()
    assert decoded.point_num == 1
    assert decoded.ranges[0] == 42
    assert decoded.intensities[0] == 7


def test_unknown_packet_type_kept_as_int():
    frame = decode_frame(encode_frame(55, b""))
    assert frame.packet_type == 55
    with pytest.raises(FrameError):
        frame.decode_payload()