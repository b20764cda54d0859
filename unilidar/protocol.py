"""Wire format of the lidar: frame layout, packet types and payload structures.

Every frame is ``header (12 bytes) + payload + tail (12 bytes)``.  The header
carries the magic ``55 AA 05 0A``, the packet type and the total frame size;
the tail carries a CRC-32 of header and payload, a message check word, two
reserved bytes and the magic ``00 FF``.  All integers are little endian.
"""

from __future__ import annotations

import ipaddress
import struct
import zlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Iterable

SDK_VERSION = "2.0.9"
SDK_VERSION_MAJOR = 2
SDK_VERSION_MINOR = 0
SDK_VERSION_PATCH = 9

FRAME_HEADER = bytes((0x55, 0xAA, 0x05, 0x0A))
FRAME_TAIL = bytes((0x00, 0xFF))

_HEADER = struct.Struct("<4sII")
_TAIL = struct.Struct("<II2s2s")
HEADER_SIZE = _HEADER.size
TAIL_SIZE = _TAIL.size

POINT_DATA_CAPACITY = 300
POINT_2D_DATA_CAPACITY = 1800


class FrameError(ValueError):
    """Raised when bytes do not form a valid frame or payload."""


class PacketType(IntEnum):
    USER_CMD = 100
    ACK_DATA = 101
    POINT_DATA = 102
    POINT_2D_DATA = 103
    IMU_DATA = 104
    VERSION = 105
    TIME_STAMP = 106
    WORK_MODE_CONFIG = 107
    IP_ADDRESS_CONFIG = 108
    MAC_ADDRESS_CONFIG = 109
    COMMAND = 2000
    PARAM_DATA = 2001


class UserCommand(IntEnum):
    RESET = 1
    STANDBY = 2  # value 0: start rotation, value 1: standby
    VERSION_GET = 3
    LATENCY = 4
    CONFIG_RESET = 5
    CONFIG_GET = 6
    CONFIG_AUTO_STANDBY = 7


class AckStatus(IntEnum):
    SUCCESS = 1
    CRC_ERROR = 2
    HEADER_ERROR = 3
    BLOCK_ERROR = 4
    WAIT_ERROR = 5  # data is not ready


def crc32(data) -> int:
    """CRC-32 (reflected, polynomial 0xEDB88320) as used in the frame tail."""
    return zlib.crc32(bytes(data)) & 0xFFFFFFFF


def _pack(st: struct.Struct, *values) -> bytes:
    try:
        return st.pack(*values)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def _exact(cls, data) -> bytes:
    data = bytes(data)
    if len(data) != cls.SIZE:
        raise FrameError(
            f"{cls.__name__} needs {cls.SIZE} bytes, got {len(data)}"
        )
    return data


def _chunks(data: bytes, sizes: Iterable[int]) -> list[bytes]:
    parts = []
    offset = 0
    for size in sizes:
        parts.append(data[offset:offset + size])
        offset += size
    return parts


def _padded(values, capacity: int, name: str) -> tuple[int, ...]:
    items = tuple(int(v) for v in values)
    if len(items) > capacity:
        raise ValueError(f"{name} holds at most {capacity} values, got {len(items)}")
    return items + (0,) * (capacity - len(items))


def _floats(values, count: int, name: str) -> tuple[float, ...]:
    items = tuple(float(v) for v in values)
    if len(items) != count:
        raise ValueError(f"{name} needs exactly {count} values, got {len(items)}")
    return items


def _fixed_bytes(value, capacity: int, name: str) -> bytes:
    raw = value.encode() if isinstance(value, str) else bytes(value)
    if len(raw) > capacity:
        raise ValueError(f"{name} holds at most {capacity} bytes, got {len(raw)}")
    return raw.ljust(capacity, b"\0")


@dataclass
class TimeStamp:
    """Seconds and nanoseconds."""

    sec: int = 0
    nsec: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<II")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.sec, self.nsec)

    @classmethod
    def unpack(cls, data) -> "TimeStamp":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


@dataclass
class DataInfo:
    """Sequence id, payload size and timestamp of a data packet."""

    seq: int = 0
    payload_size: int = 0
    stamp: TimeStamp = field(default_factory=TimeStamp)

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<II")
    SIZE: ClassVar[int] = _STRUCT.size + TimeStamp.SIZE

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.seq, self.payload_size) + self.stamp.pack()

    @classmethod
    def unpack(cls, data) -> "DataInfo":
        head, stamp = _chunks(_exact(cls, data), (cls._STRUCT.size, TimeStamp.SIZE))
        return cls(*cls._STRUCT.unpack(head), stamp=TimeStamp.unpack(stamp))


@dataclass
class LidarCalibParam:
    """Calibration parameters; distances in metres, angles in radians."""

    a_axis_dist: float = 0.0
    b_axis_dist: float = 0.0
    theta_angle_bias: float = 0.0
    alpha_angle_bias: float = 0.0
    beta_angle: float = 0.0
    xi_angle: float = 0.0
    range_bias: float = 0.0
    range_scale: float = 0.0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<8f")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return _pack(
            self._STRUCT,
            self.a_axis_dist,
            self.b_axis_dist,
            self.theta_angle_bias,
            self.alpha_angle_bias,
            self.beta_angle,
            self.xi_angle,
            self.range_bias,
            self.range_scale,
        )

    @classmethod
    def unpack(cls, data) -> "LidarCalibParam":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


@dataclass
class LidarInsideState:
    """Internal state reported alongside point data."""

    sys_rotation_period: int = 0
    com_rotation_period: int = 0
    dirty_index: float = 0.0
    packet_lost_up: float = 0.0
    packet_lost_down: float = 0.0
    apd_temperature: float = 0.0
    apd_voltage: float = 0.0
    laser_voltage: float = 0.0
    imu_temperature: float = 0.0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<II7f")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return _pack(
            self._STRUCT,
            self.sys_rotation_period,
            self.com_rotation_period,
            self.dirty_index,
            self.packet_lost_up,
            self.packet_lost_down,
            self.apd_temperature,
            self.apd_voltage,
            self.laser_voltage,
            self.imu_temperature,
        )

    @classmethod
    def unpack(cls, data) -> "LidarInsideState":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


_PREFIX_SIZE = DataInfo.SIZE + LidarInsideState.SIZE + LidarCalibParam.SIZE


@dataclass
class LidarPointData:
    """One 3D scan line: up to 300 ranges (mm) and intensities."""

    info: DataInfo = field(default_factory=DataInfo)
    state: LidarInsideState = field(default_factory=LidarInsideState)
    param: LidarCalibParam = field(default_factory=LidarCalibParam)
    com_horizontal_angle_start: float = 0.0
    com_horizontal_angle_step: float = 0.0
    scan_period: float = 0.0
    range_min: float = 0.0
    range_max: float = 0.0
    angle_min: float = 0.0
    angle_increment: float = 0.0
    time_increment: float = 0.0
    point_num: int = 0
    ranges: tuple[int, ...] = ()
    intensities: tuple[int, ...] = ()

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(
        f"<8fI{POINT_DATA_CAPACITY}H{POINT_DATA_CAPACITY}B"
    )
    SIZE: ClassVar[int] = _PREFIX_SIZE + _STRUCT.size

    def __post_init__(self) -> None:
        self.ranges = _padded(self.ranges, POINT_DATA_CAPACITY, "ranges")
        self.intensities = _padded(self.intensities, POINT_DATA_CAPACITY, "intensities")

    def pack(self) -> bytes:
        line = _pack(
            self._STRUCT,
            self.com_horizontal_angle_start,
            self.com_horizontal_angle_step,
            self.scan_period,
            self.range_min,
            self.range_max,
            self.angle_min,
            self.angle_increment,
            self.time_increment,
            self.point_num,
            *self.ranges,
            *self.intensities,
        )
        return self.info.pack() + self.state.pack() + self.param.pack() + line

    @classmethod
    def unpack(cls, data) -> "LidarPointData":
        info, state, param, line = _chunks(
            _exact(cls, data),
            (DataInfo.SIZE, LidarInsideState.SIZE, LidarCalibParam.SIZE, cls._STRUCT.size),
        )
        values = cls._STRUCT.unpack(line)
        return cls(
            DataInfo.unpack(info),
            LidarInsideState.unpack(state),
            LidarCalibParam.unpack(param),
            *values[:9],
            ranges=values[9:9 + POINT_DATA_CAPACITY],
            intensities=values[9 + POINT_DATA_CAPACITY:],
        )


@dataclass
class Lidar2DPointData:
    """One 2D scan: up to 1800 ranges and intensities."""

    info: DataInfo = field(default_factory=DataInfo)
    state: LidarInsideState = field(default_factory=LidarInsideState)
    param: LidarCalibParam = field(default_factory=LidarCalibParam)
    scan_period: float = 0.0
    range_min: float = 0.0
    range_max: float = 0.0
    angle_min: float = 0.0
    angle_increment: float = 0.0
    time_increment: float = 0.0
    point_num: int = 0
    ranges: tuple[int, ...] = ()
    intensities: tuple[int, ...] = ()

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(
        f"<6fI{POINT_2D_DATA_CAPACITY}H{POINT_2D_DATA_CAPACITY}B"
    )
    SIZE: ClassVar[int] = _PREFIX_SIZE + _STRUCT.size

    def __post_init__(self) -> None:
        self.ranges = _padded(self.ranges, POINT_2D_DATA_CAPACITY, "ranges")
        self.intensities = _padded(self.intensities, POINT_2D_DATA_CAPACITY, "intensities")

    def pack(self) -> bytes:
        line = _pack(
            self._STRUCT,
            self.scan_period,
            self.range_min,
            self.range_max,
            self.angle_min,
            self.angle_increment,
            self.time_increment,
            self.point_num,
            *self.ranges,
            *self.intensities,
        )
        return self.info.pack() + self.state.pack() + self.param.pack() + line

    @classmethod
    def unpack(cls, data) -> "Lidar2DPointData":
        info, state, param, line = _chunks(
            _exact(cls, data),
            (DataInfo.SIZE, LidarInsideState.SIZE, LidarCalibParam.SIZE, cls._STRUCT.size),
        )
        values = cls._STRUCT.unpack(line)
        return cls(
            DataInfo.unpack(info),
            LidarInsideState.unpack(state),
            LidarCalibParam.unpack(param),
            *values[:7],
            ranges=values[7:7 + POINT_2D_DATA_CAPACITY],
            intensities=values[7 + POINT_2D_DATA_CAPACITY:],
        )


@dataclass
class LidarImuData:
    """IMU sample: quaternion, angular velocity and linear acceleration."""

    info: DataInfo = field(default_factory=DataInfo)
    quaternion: tuple[float, ...] = (0.0, 0.0, 0.0, 0.0)
    angular_velocity: tuple[float, ...] = (0.0, 0.0, 0.0)
    linear_acceleration: tuple[float, ...] = (0.0, 0.0, 0.0)

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<10f")
    SIZE: ClassVar[int] = DataInfo.SIZE + _STRUCT.size

    def __post_init__(self) -> None:
        self.quaternion = _floats(self.quaternion, 4, "quaternion")
        self.angular_velocity = _floats(self.angular_velocity, 3, "angular_velocity")
        self.linear_acceleration = _floats(self.linear_acceleration, 3, "linear_acceleration")

    def pack(self) -> bytes:
        return self.info.pack() + _pack(
            self._STRUCT, *self.quaternion, *self.angular_velocity, *self.linear_acceleration
        )

    @classmethod
    def unpack(cls, data) -> "LidarImuData":
        info, rest = _chunks(_exact(cls, data), (DataInfo.SIZE, cls._STRUCT.size))
        values = cls._STRUCT.unpack(rest)
        return cls(DataInfo.unpack(info), values[:4], values[4:7], values[7:])


@dataclass
class LidarAckData:
    """Acknowledgement the lidar sends for every packet it receives."""

    packet_type: int = 0
    cmd_type: int = 0
    cmd_value: int = 0
    status: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<4I")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.packet_type, self.cmd_type, self.cmd_value, self.status)

    @classmethod
    def unpack(cls, data) -> "LidarAckData":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


@dataclass
class LidarVersionData:
    """Hardware and firmware versions, device name and build date."""

    hw_version: bytes = b""
    sw_version: bytes = b""
    name: bytes = b""
    date: bytes = b""
    reserve: bytes = b""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<4s4s24s8s40s")
    SIZE: ClassVar[int] = _STRUCT.size

    def __post_init__(self) -> None:
        self.hw_version = _fixed_bytes(self.hw_version, 4, "hw_version")
        self.sw_version = _fixed_bytes(self.sw_version, 4, "sw_version")
        self.name = _fixed_bytes(self.name, 24, "name")
        self.date = _fixed_bytes(self.date, 8, "date")
        self.reserve = _fixed_bytes(self.reserve, 40, "reserve")

    def pack(self) -> bytes:
        return _pack(
            self._STRUCT, self.hw_version, self.sw_version, self.name, self.date, self.reserve
        )

    @classmethod
    def unpack(cls, data) -> "LidarVersionData":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))

    def firmware_version(self) -> str:
        """Firmware version as dotted numbers."""
        return ".".join(str(b) for b in self.sw_version)

    def hardware_version(self) -> str:
        """Hardware version as dotted numbers."""
        return ".".join(str(b) for b in self.hw_version)

    @property
    def device_name(self) -> str:
        return self.name.split(b"\0", 1)[0].decode("ascii", errors="replace")


@dataclass
class LidarIpAddressConfig:
    """Network settings of the lidar's UDP interface."""

    lidar_ip: ipaddress.IPv4Address
    user_ip: ipaddress.IPv4Address
    gateway: ipaddress.IPv4Address = ipaddress.IPv4Address("0.0.0.0")
    subnet_mask: ipaddress.IPv4Address = ipaddress.IPv4Address("255.255.255.0")
    lidar_port: int = 6101
    user_port: int = 6201

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<4s4s4s4sHH")
    SIZE: ClassVar[int] = _STRUCT.size

    def __post_init__(self) -> None:
        self.lidar_ip = ipaddress.IPv4Address(self.lidar_ip)
        self.user_ip = ipaddress.IPv4Address(self.user_ip)
        self.gateway = ipaddress.IPv4Address(self.gateway)
        self.subnet_mask = ipaddress.IPv4Address(self.subnet_mask)

    def pack(self) -> bytes:
        return _pack(
            self._STRUCT,
            self.lidar_ip.packed,
            self.user_ip.packed,
            self.gateway.packed,
            self.subnet_mask.packed,
            self.lidar_port,
            self.user_port,
        )

    @classmethod
    def unpack(cls, data) -> "LidarIpAddressConfig":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


@dataclass
class LidarMacAddressConfig:
    """MAC address of the lidar; accepts bytes or ``aa:bb:..`` text."""

    mac: bytes
    reserve: bytes = b"\0\0"

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<6s2s")
    SIZE: ClassVar[int] = _STRUCT.size

    def __post_init__(self) -> None:
        if isinstance(self.mac, str):
            text = self.mac.replace(":", "").replace("-", "")
            try:
                self.mac = bytes.fromhex(text)
            except ValueError as exc:
                raise ValueError(f"invalid MAC address: {self.mac!r}") from exc
        self.mac = bytes(self.mac)
        if len(self.mac) != 6:
            raise ValueError(f"MAC address needs 6 bytes, got {len(self.mac)}")
        self.reserve = _fixed_bytes(self.reserve, 2, "reserve")

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.mac, self.reserve)

    @classmethod
    def unpack(cls, data) -> "LidarMacAddressConfig":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))

    def __str__(self) -> str:
        return ":".join(f"{b:02x}" for b in self.mac)


@dataclass
class LidarWorkModeConfig:
    """Work mode bit field (e.g. bit 2 disables the IMU, bit 3 selects serial)."""

    mode: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<I")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.mode)

    @classmethod
    def unpack(cls, data) -> "LidarWorkModeConfig":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


@dataclass
class LidarUserCtrlCmd:
    """User control command sent to the lidar."""

    cmd_type: int = 0
    cmd_value: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<II")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.cmd_type, self.cmd_value)

    @classmethod
    def unpack(cls, data) -> "LidarUserCtrlCmd":
        return cls(*cls._STRUCT.unpack(_exact(cls, data)))


_PAYLOADS = {
    PacketType.USER_CMD: LidarUserCtrlCmd,
    PacketType.ACK_DATA: LidarAckData,
    PacketType.POINT_DATA: LidarPointData,
    PacketType.POINT_2D_DATA: Lidar2DPointData,
    PacketType.IMU_DATA: LidarImuData,
    PacketType.VERSION: LidarVersionData,
    PacketType.TIME_STAMP: TimeStamp,
    PacketType.WORK_MODE_CONFIG: LidarWorkModeConfig,
    PacketType.IP_ADDRESS_CONFIG: LidarIpAddressConfig,
    PacketType.MAC_ADDRESS_CONFIG: LidarMacAddressConfig,
}


def payload_class(packet_type):
    """Return the payload structure carried by frames of ``packet_type``."""
    try:
        return _PAYLOADS[PacketType(packet_type)]
    except (ValueError, KeyError):
        raise FrameError(f"no payload structure for packet type {packet_type}") from None


@dataclass(frozen=True)
class Frame:
    """A decoded frame: packet type, raw payload and tail check word."""

    packet_type: int
    payload: bytes
    msg_type_check: int = 0

    def decode_payload(self):
        """Decode the payload into the structure its packet type names."""
        return payload_class(self.packet_type).unpack(self.payload)


def encode_frame(packet_type, payload, msg_type_check: int = 0) -> bytes:
    """Wrap a payload (bytes or a structure with ``pack``) in header and tail."""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        body = bytes(payload)
    else:
        body = payload.pack()
    size = HEADER_SIZE + len(body) + TAIL_SIZE
    head = _pack(_HEADER, FRAME_HEADER, int(packet_type), size)
    tail = _pack(_TAIL, crc32(head + body), msg_type_check, b"\0\0", FRAME_TAIL)
    return head + body + tail


def decode_frame(buffer) -> Frame:
    """Decode a buffer that holds exactly one whole frame."""
    data = bytes(buffer)
    if len(data) < HEADER_SIZE + TAIL_SIZE:
        raise FrameError(f"frame too short: {len(data)} bytes")
    magic, packet_type, packet_size = _HEADER.unpack_from(data)
    if magic != FRAME_HEADER:
        raise FrameError("bad frame header")
    if packet_size != len(data):
        raise FrameError(f"frame size field is {packet_size}, buffer holds {len(data)} bytes")
    crc, msg_type_check, _reserve, tail = _TAIL.unpack_from(data, len(data) - TAIL_SIZE)
    if tail != FRAME_TAIL:
        raise FrameError("bad frame tail")
    if crc != crc32(data[:-TAIL_SIZE]):
        raise FrameError("frame CRC mismatch")
    try:
        packet_type = PacketType(packet_type)
    except ValueError:
        pass
    return Frame(packet_type, data[HEADER_SIZE:-TAIL_SIZE], msg_type_check)