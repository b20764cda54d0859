# unilidar

Talk to a Unitree L2 lidar from Python. You can open it over UDP or a serial
port, read its framed packets, and turn them into point clouds and IMU samples.

## Modules

- **`unilidar.protocol`** holds the wire format. Each packet the lidar sends or
  accepts has a dataclass with `pack()` and `unpack()`:
  - `LidarPointData` and `Lidar2DPointData`
  - `LidarImuData`
  - `LidarAckData`
  - `LidarVersionData`
  - `LidarIpAddressConfig` and `LidarMacAddressConfig`
  - `LidarWorkModeConfig`
  - `LidarUserCtrlCmd`
  - `TimeStamp`

  `encode_frame()` wraps a payload in the 12-byte header and 12-byte tail, and
  `decode_frame()` unwraps one whole frame into a `Frame`. `crc32()` is the
  frame checksum, and `payload_class()` maps a `PacketType` to its payload
  class. Malformed frames and payloads of the wrong size raise `FrameError`,
  which is a subclass of `ValueError`.
- **`unilidar.stream`** provides `FrameReader`. `feed()` takes bytes as they
  arrive, and `frames()` yields every complete, valid frame. It skips noise and
  frames with a bad CRC, then picks up again at the next header.
- **`unilidar.cloud`** turns packets into points:
  - `parse_point_cloud()` turns one 3D point packet into a `PointCloudUnitree`
    of `PointUnitree` points. It applies the packet's calibration, the
    packet's own range limits and the range limits you pass in.
  - `parse_point_cloud_2d()` does the same for a 2D scan, with points in the
    Y-Z plane.
  - `to_point_records()` flattens a cloud into
    `(x, y, z, intensity, ring, time)` tuples.
- **`unilidar.transport`** provides `UdpTransport` and `SerialTransport`.
  - `SerialTransport` accepts any pyserial URL.
  - `receive()` returns `b""` when nothing arrives before the timeout.
  - Failures to open, send or read raise `TransportError`.
- **`unilidar.reader`** provides `LidarReader`, which ties the other modules
  together. It reads from the device, parses one frame per `run_parse()` call
  and keeps the latest data. It sends commands: start and stop rotation,
  reset, work mode, time sync, and IP and MAC configuration.
- **`unilidar.demo`** holds `example_process()`. It reports the firmware,
  hardware and SDK versions, stops and restarts the rotation, and reports the
  dirty percentage and time delay. It then prints IMU samples and clouds
  forever. `format_imu()`, `format_cloud()` and `wait_for()` are its building
  blocks.
- **`unilidar.bridge`** holds `LidarNode`. It turns the reader's output into
  message objects and passes each one, with its topic, to a `publish`
  callable:
  - `ImuMessage`
  - `TransformMessage`
  - `CloudMessage`
  - `LaserScanMessage`

## Installation

```
pip install unilidar
```

Python 3.10 or later is required. Serial access uses `pyserial`.

## Using the reader

```python
from unilidar.reader import LidarReader

with LidarReader() as reader:
    reader.initialize_udp(6101, "192.168.1.62", 6201, "192.168.1.2")
    reader.start_rotation()
    reader.set_work_mode(0)

    while True:
        packet_type = reader.run_parse()
        cloud = reader.point_cloud()
        if cloud is not None:
            print(cloud.id, cloud.stamp, len(cloud.points))
```

`run_parse()` returns the packet type of the frame it parsed, or 0 if there was
none.

**Clouds.** The reader gathers `cloud_scan_num` 3D packets (18 by default)
into one cloud. `point_cloud()` returns that cloud only right after the packet
that completed it; otherwise it returns `None`.

**Other queries.** These return `None` until the matching data has arrived:

- `imu_data()`
- `firmware_version()`
- `hardware_version()`
- `time_delay()`
- `dirty_percentage()`

**Serial.** For a lidar on a serial link, use
`initialize_serial("/dev/ttyACM0", 4000000)` instead.

**Errors.** The `initialize_*` methods raise `TransportError` when the
connection cannot be opened. They raise `ValueError` for bad settings, such as
`range_min` greater than `range_max`. Any other call made before initializing
raises `TransportError`.

## Working with frames directly

```python
from unilidar.protocol import LidarWorkModeConfig, PacketType, decode_frame, encode_frame

frame_bytes = encode_frame(PacketType.WORK_MODE_CONFIG, LidarWorkModeConfig(mode=8))

frame = decode_frame(frame_bytes)
config = frame.decode_payload()   # LidarWorkModeConfig(mode=8)
```

## Command-line tools

The `unilidar` command has one sub-command per task:

| Sub-command | What it does |
|---|---|
| `unilidar serial` | Runs the demo over a serial link (work mode 8 by default). |
| `unilidar udp` | Runs the demo over UDP (work mode 0 by default). |
| `unilidar udp-cloud` | Prints 3D clouds received over UDP, with the IMU disabled (work mode 4). `--max-clouds N` stops it after N clouds. |
| `unilidar set-ip` | Writes a new network configuration to the lidar. Options: `--new-lidar-ip`, `--new-user-ip`, `--new-lidar-port`, `--new-user-port`, `--gateway`, `--subnet-mask`. |
| `unilidar to-serial` | Switches the lidar to serial mode over UDP. |
| `unilidar to-udp` | Switches the lidar to UDP mode over serial. |

Connection options:

- UDP sub-commands take `--lidar-ip`, `--lidar-port`, `--local-ip` and
  `--local-port`.
- Serial sub-commands take `--port` and `--baudrate`.

Run `unilidar --help` for the full list.

The `unilidar-node` command starts a `LidarNode`:

```
unilidar-node
unilidar-node --ros2 --lidar-ip 192.168.1.62
```

Defaults:

- **Without `--ros2`** the node uses `NodeConfig.ros1_defaults()`: a serial
  link, with laser scans published.
- **With `--ros2`** it uses `NodeConfig.ros2_defaults()`: a UDP link, with IMU
  messages stamped by the lidar.

Every other field of `NodeConfig` can be overridden with an option of the same
name, for example `--cloud-topic` or `--work-mode`.

## What this package does not do

`LidarNode` does not connect to any robot middleware or message bus. From the
command line it prints one line per message: topic, message type and stamp.
To send the messages anywhere else, build a `LidarNode` yourself and pass your
own `publish(topic, message)` callable. Clouds come out as plain tuples; no
point-cloud library format is produced.

## Running the tests

```
pip install "unilidar[test]"
pytest
```