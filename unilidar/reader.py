"""High-level reader: talks to the lidar and keeps its latest data."""

from __future__ import annotations

from dataclasses import dataclass

from .cloud import (
    PointCloudUnitree,
    PointUnitree,
    parse_point_cloud,
    system_timestamp,
    system_timestamp_parts,
)
from .protocol import (
    SDK_VERSION,
    FrameError,
    Lidar2DPointData,
    LidarAckData,
    LidarImuData,
    LidarIpAddressConfig,
    LidarMacAddressConfig,
    LidarPointData,
    LidarUserCtrlCmd,
    LidarVersionData,
    LidarWorkModeConfig,
    PacketType,
    TimeStamp,
    UserCommand,
    encode_frame,
)
from .stream import FrameReader
from .transport import DEFAULT_RECEIVE_SIZE, SerialTransport, TransportError, UdpTransport

UDP_RECEIVE_TIMEOUT = 0.01
SERIAL_RECEIVE_TIMEOUT = 0.01


@dataclass
class ReaderSettings:
    """How scans are assembled into clouds."""

    cloud_scan_num: int = 18
    use_system_timestamp: bool = True
    range_min: float = 0.0
    range_max: float = 100.0

    def __post_init__(self) -> None:
        self.cloud_scan_num = int(self.cloud_scan_num)
        self.range_min = float(self.range_min)
        self.range_max = float(self.range_max)
        if self.cloud_scan_num < 1:
            raise ValueError(f"cloud_scan_num must be at least 1, got {self.cloud_scan_num}")
        if self.range_min > self.range_max:
            raise ValueError(
                f"range_min {self.range_min} is greater than range_max {self.range_max}"
            )


def _stamp_seconds(stamp: TimeStamp) -> float:
    return stamp.sec + stamp.nsec / 1.0e9


class LidarReader:
    """Reads frames from a transport and keeps the latest parsed data.

    ``run_parse`` is the main entry point: call it repeatedly; each call
    parses at most one frame and returns its packet type, or 0.
    """

    def __init__(self, transport=None, settings: ReaderSettings | None = None) -> None:
        self._transport = transport
        self.settings = settings if settings is not None else ReaderSettings()
        self._stream = FrameReader()
        self.local_ip: str | None = None
        self._reset_state()

    def _reset_state(self) -> None:
        self.point_data: LidarPointData | None = None
        self.point_data_2d: Lidar2DPointData | None = None
        self.last_ack: LidarAckData | None = None
        self._imu: LidarImuData | None = None
        self._version: LidarVersionData | None = None
        self._time_delay: float | None = None
        self._partial: PointCloudUnitree | None = None
        self._partial_scans = 0
        self._cloud: PointCloudUnitree | None = None
        self._cloud_ready = False
        self._cloud_count = 0

    @property
    def transport(self):
        return self._transport

    # -- connection -------------------------------------------------------

    def _connect(self, transport, settings: ReaderSettings) -> None:
        self.close()
        self._transport = transport
        self.settings = settings
        self._stream = FrameReader()
        self._reset_state()
        self.send_user_ctrl_cmd(LidarUserCtrlCmd(UserCommand.VERSION_GET, 0))

    def initialize_serial(
        self,
        port: str = "/dev/ttyACM0",
        baudrate: int = 4000000,
        cloud_scan_num: int = 18,
        use_system_timestamp: bool = True,
        range_min: float = 0.0,
        range_max: float = 100.0,
    ) -> None:
        """Open a serial connection; raises TransportError on failure."""
        settings = ReaderSettings(cloud_scan_num, use_system_timestamp, range_min, range_max)
        transport = SerialTransport(port, baudrate, timeout=SERIAL_RECEIVE_TIMEOUT)
        self._connect(transport, settings)

    def initialize_udp(
        self,
        lidar_port: int = 6101,
        lidar_ip: str = "192.168.1.62",
        local_port: int = 6201,
        local_ip: str = "192.168.1.2",
        cloud_scan_num: int = 18,
        use_system_timestamp: bool = True,
        range_min: float = 0.0,
        range_max: float = 100.0,
    ) -> None:
        """Open a UDP connection; the local port is bound on every interface."""
        settings = ReaderSettings(cloud_scan_num, use_system_timestamp, range_min, range_max)
        transport = UdpTransport(
            lidar_ip, lidar_port, local_port=local_port, receive_timeout=UDP_RECEIVE_TIMEOUT
        )
        self._connect(transport, settings)
        self.local_ip = local_ip

    def close(self) -> None:
        """Close the connection, if any."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def __enter__(self) -> "LidarReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _require_transport(self):
        if self._transport is None:
            raise TransportError("lidar reader is not initialized")
        return self._transport

    # -- parsing ----------------------------------------------------------

    def _next_frame(self):
        return next(self._stream.frames(), None)

    def run_parse(self) -> int:
        """Parse one frame if one is available and return its packet type, else 0."""
        transport = self._require_transport()
        frame = self._next_frame()
        if frame is None:
            data = transport.receive(DEFAULT_RECEIVE_SIZE)
            if data:
                self._stream.feed(data)
                frame = self._next_frame()
        if frame is None:
            return 0
        try:
            payload = frame.decode_payload()
        except FrameError:
            return 0
        self._handle(frame.packet_type, payload)
        return int(frame.packet_type)

    def _handle(self, packet_type, payload) -> None:
        if packet_type == PacketType.POINT_DATA:
            self._on_point_data(payload)
        elif packet_type == PacketType.POINT_2D_DATA:
            self.point_data_2d = payload
            self._measure_delay(payload.info.stamp)
        elif packet_type == PacketType.IMU_DATA:
            self._imu = payload
            self._measure_delay(payload.info.stamp)
        elif packet_type == PacketType.VERSION:
            self._version = payload
        elif packet_type == PacketType.ACK_DATA:
            self.last_ack = payload
        elif packet_type == PacketType.TIME_STAMP:
            self._measure_delay(payload)

    def _measure_delay(self, stamp: TimeStamp) -> None:
        self._time_delay = system_timestamp() - _stamp_seconds(stamp)

    def _on_point_data(self, data: LidarPointData) -> None:
        self.point_data = data
        self._measure_delay(data.info.stamp)
        settings = self.settings
        scan = parse_point_cloud(
            data, settings.use_system_timestamp, settings.range_min, settings.range_max
        )
        if self._partial is None:
            self._partial = PointCloudUnitree(stamp=scan.stamp, ring_num=1)
            self._partial_scans = 0
        offset = scan.stamp - self._partial.stamp
        self._partial.points.extend(
            PointUnitree(p.x, p.y, p.z, p.intensity, p.time + offset, p.ring)
            for p in scan.points
        )
        self._partial_scans += 1
        if self._partial_scans >= settings.cloud_scan_num:
            self._cloud_count += 1
            self._partial.id = self._cloud_count
            self._cloud = self._partial
            self._partial = None
            self._cloud_ready = True
        else:
            self._cloud_ready = False

    def clear_buffer(self) -> None:
        """Drop every byte waiting to be parsed."""
        self._stream.clear()

    # -- queries ----------------------------------------------------------

    def point_cloud(self) -> PointCloudUnitree | None:
        """The cloud completed by the latest point packet, or None."""
        return self._cloud if self._cloud_ready else None

    def imu_data(self) -> LidarImuData | None:
        return self._imu

    def sdk_version(self) -> str:
        return SDK_VERSION

    def firmware_version(self) -> str | None:
        return None if self._version is None else self._version.firmware_version()

    def hardware_version(self) -> str | None:
        return None if self._version is None else self._version.hardware_version()

    def time_delay(self) -> float | None:
        """One-way transmission delay in seconds, from the latest stamped packet."""
        return self._time_delay

    def dirty_percentage(self) -> float | None:
        """Share of points removed because of dirt on the cover, as reported."""
        data = self.point_data if self.point_data is not None else self.point_data_2d
        return None if data is None else data.state.dirty_index

    def buffer_cached_size(self) -> int:
        return self._stream.cached_size()

    def buffer_read_size(self) -> int:
        return self._stream.read_size

    # -- commands ---------------------------------------------------------

    def _send(self, packet_type: PacketType, payload) -> None:
        self._require_transport().send(encode_frame(packet_type, payload))

    def send_user_ctrl_cmd(self, cmd: LidarUserCtrlCmd) -> None:
        self._send(PacketType.USER_CMD, cmd)

    def set_work_mode(self, mode: int) -> None:
        self._send(PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(int(mode)))

    def sync_timestamp(self) -> None:
        """Send the current system time to the lidar."""
        self._send(PacketType.TIME_STAMP, system_timestamp_parts())

    def reset(self) -> None:
        self.send_user_ctrl_cmd(LidarUserCtrlCmd(UserCommand.RESET, 1))

    def stop_rotation(self) -> None:
        self.send_user_ctrl_cmd(LidarUserCtrlCmd(UserCommand.STANDBY, 1))

    def start_rotation(self) -> None:
        self.send_user_ctrl_cmd(LidarUserCtrlCmd(UserCommand.STANDBY, 0))

    def set_ip_address_config(self, config: LidarIpAddressConfig) -> None:
        self._send(PacketType.IP_ADDRESS_CONFIG, config)

    def set_mac_address_config(self, config: LidarMacAddressConfig) -> None:
        self._send(PacketType.MAC_ADDRESS_CONFIG, config)