"""Command line tools for connecting to and configuring the lidar."""

from __future__ import annotations

import argparse
import ipaddress
import sys
import time

from .cloud import PointCloudUnitree
from .demo import example_process
from .protocol import LidarIpAddressConfig, PacketType
from .reader import LidarReader
from .transport import TransportError

SERIAL_MODE = 8
UDP_MODE = 0
IMU_DISABLED_MODE = 1 << 2

_FAILED = 1


def _add_serial(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--port", default="/dev/ttyACM0", help="serial device or pyserial URL")
    parser.add_argument("--baudrate", type=int, default=4000000)


def _add_udp(parser: argparse.ArgumentParser, lidar_ip: str, local_ip: str) -> None:
    parser.add_argument("--lidar-ip", default=lidar_ip)
    parser.add_argument("--lidar-port", type=int, default=6101)
    parser.add_argument("--local-ip", default=local_ip)
    parser.add_argument("--local-port", type=int, default=6201)


def _add_cloud(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cloud-scan-num", type=int, default=18)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one sub-command per tool."""
    parser = argparse.ArgumentParser(prog="unilidar", description="Lidar tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    serial_cmd = sub.add_parser("serial", help="run the demo over a serial link")
    _add_serial(serial_cmd)
    _add_cloud(serial_cmd)
    serial_cmd.add_argument("--work-mode", type=int, default=SERIAL_MODE)
    serial_cmd.set_defaults(handler=_run_serial_example)

    udp_cmd = sub.add_parser("udp", help="run the demo over UDP")
    _add_udp(udp_cmd, "192.168.1.62", "192.168.1.2")
    _add_cloud(udp_cmd)
    udp_cmd.add_argument("--work-mode", type=int, default=UDP_MODE)
    udp_cmd.set_defaults(handler=_run_udp_example)

    cloud_cmd = sub.add_parser("udp-cloud", help="print 3D clouds received over UDP")
    _add_udp(cloud_cmd, "192.168.1.62", "192.168.1.2")
    _add_cloud(cloud_cmd)
    cloud_cmd.add_argument("--work-mode", type=int, default=IMU_DISABLED_MODE)
    cloud_cmd.add_argument("--max-clouds", type=int, default=None, help="stop after N clouds")
    cloud_cmd.set_defaults(handler=_run_udp_cloud)

    ip_cmd = sub.add_parser("set-ip", help="change the lidar's network settings")
    _add_udp(ip_cmd, "192.168.1.62", "192.168.1.2")
    ip_cmd.add_argument("--new-lidar-ip", type=ipaddress.IPv4Address,
                        default=ipaddress.IPv4Address("192.168.123.110"))
    ip_cmd.add_argument("--new-user-ip", type=ipaddress.IPv4Address,
                        default=ipaddress.IPv4Address("192.168.123.120"))
    ip_cmd.add_argument("--new-lidar-port", type=int, default=6101)
    ip_cmd.add_argument("--new-user-port", type=int, default=6201)
    ip_cmd.add_argument("--gateway", type=ipaddress.IPv4Address,
                        default=ipaddress.IPv4Address("0.0.0.0"))
    ip_cmd.add_argument("--subnet-mask", type=ipaddress.IPv4Address,
                        default=ipaddress.IPv4Address("255.255.255.0"))
    ip_cmd.set_defaults(handler=_run_set_ip)

    to_serial = sub.add_parser("to-serial", help="switch the lidar to serial mode over UDP")
    _add_udp(to_serial, "192.168.123.110", "192.168.123.120")
    to_serial.set_defaults(handler=_run_to_serial)

    to_udp = sub.add_parser("to-udp", help="switch the lidar to UDP mode over serial")
    _add_serial(to_udp)
    to_udp.set_defaults(handler=_run_to_udp)

    return parser


def _open_serial(reader: LidarReader, args) -> bool:
    try:
        reader.initialize_serial(
            args.port, args.baudrate, cloud_scan_num=getattr(args, "cloud_scan_num", 18)
        )
    except (TransportError, ValueError):
        print("Unilidar initialization failed! Exit here!")
        return False
    print("Unilidar initialization succeed!")
    return True


def _initialize_udp(reader: LidarReader, args) -> None:
    reader.initialize_udp(
        args.lidar_port,
        args.lidar_ip,
        args.local_port,
        args.local_ip,
        cloud_scan_num=getattr(args, "cloud_scan_num", 18),
    )


def _open_udp(reader: LidarReader, args) -> bool:
    try:
        _initialize_udp(reader, args)
    except (TransportError, ValueError):
        print("Unilidar initialization failed! Exit here!")
        return False
    print("Unilidar initialization succeed!")
    return True


def _prepare(reader: LidarReader, mode: int, message: str) -> None:
    reader.start_rotation()
    time.sleep(1)
    print(message)
    reader.set_work_mode(mode)
    time.sleep(1)
    reader.reset()
    time.sleep(1)


def _run_serial_example(args, reader: LidarReader) -> int:
    if not _open_serial(reader, args):
        return _FAILED
    _prepare(reader, args.work_mode, f"set Lidar work mode to: {args.work_mode}")
    example_process(reader)
    return 0


def _run_udp_example(args, reader: LidarReader) -> int:
    if not _open_udp(reader, args):
        return _FAILED
    _prepare(reader, args.work_mode, f"set Lidar work mode to: {args.work_mode}")
    example_process(reader)
    return 0


def _describe_cloud(cloud: PointCloudUnitree, limit: int = 10) -> str:
    lines = [
        "A Cloud message is parsed!",
        f"\tstamp = {cloud.stamp:.6f}, id = {cloud.id}",
        f"\tcloud size = {len(cloud.points)}, ringNum = {cloud.ring_num}",
        "\tfirst 10 points (x, y, z, intensity, time, ring):",
    ]
    lines.extend(
        f"\t  ({p.x:.6f}, {p.y:.6f}, {p.z:.6f}, {p.intensity:.6f}, {p.time:.6f}, {int(p.ring)})"
        for p in cloud.points[:limit]
    )
    return "\n".join(lines)


def _run_udp_cloud(args, reader: LidarReader) -> int:
    try:
        _initialize_udp(reader, args)
    except (TransportError, ValueError):
        print("Unilidar UDP initialization failed, exiting.", file=sys.stderr)
        return _FAILED
    print("Unilidar UDP initialization succeeded.")
    _prepare(reader, args.work_mode, f"Setting work mode to: {args.work_mode}")

    printed = 0
    while args.max_clouds is None or printed < args.max_clouds:
        if reader.run_parse() != PacketType.POINT_DATA:
            continue
        cloud = reader.point_cloud()
        if cloud is None:
            continue
        print(_describe_cloud(cloud))
        printed += 1
    return 0


def _run_set_ip(args, reader: LidarReader) -> int:
    if not _open_udp(reader, args):
        return _FAILED
    time.sleep(1)
    config = LidarIpAddressConfig(
        lidar_ip=args.new_lidar_ip,
        user_ip=args.new_user_ip,
        gateway=args.gateway,
        subnet_mask=args.subnet_mask,
        lidar_port=args.new_lidar_port,
        user_port=args.new_user_port,
    )
    reader.set_ip_address_config(config)
    print("Lidar IP is reset! Please reboot lidar!")
    time.sleep(1)
    return 0


def _run_to_serial(args, reader: LidarReader) -> int:
    if not _open_udp(reader, args):
        return _FAILED
    time.sleep(1)
    print("set Lidar to serial mode")
    reader.set_work_mode(SERIAL_MODE)
    print("done")
    time.sleep(1)
    return 0


def _run_to_udp(args, reader: LidarReader) -> int:
    if not _open_serial(reader, args):
        return _FAILED
    reader.start_rotation()
    time.sleep(1)
    print("set Lidar to udp mode")
    reader.set_work_mode(UDP_MODE)
    print("done")
    time.sleep(1)
    return 0


def main(argv=None) -> int:
    """Run the selected tool and return its exit status."""
    args = build_parser().parse_args(argv)
    try:
        with LidarReader() as reader:
            return args.handler(args, reader)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())