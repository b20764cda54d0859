"""Byte transports to the lidar: a UDP socket and a serial port."""

from __future__ import annotations

import select
import socket

import serial

DEFAULT_RECEIVE_SIZE = 65536


class TransportError(OSError):
    """Raised when a transport cannot be opened or used."""


def _check_timeout(seconds):
    if seconds is None:
        return None
    seconds = float(seconds)
    if seconds < 0:
        raise ValueError(f"timeout must not be negative, got {seconds}")
    return seconds


def _check_size(size: int) -> int:
    size = int(size)
    if size < 1:
        raise ValueError(f"receive size must be positive, got {size}")
    return size


class UdpTransport:
    """A UDP socket bound to a local port that talks to one remote endpoint.

    ``receive`` returns ``b""`` when nothing arrives within the receive
    timeout; ``send`` raises :class:`TransportError` when the socket does not
    become writable within the send timeout.  A timeout of ``None`` blocks.
    """

    def __init__(
        self,
        remote_ip: str,
        remote_port: int,
        local_port: int = 0,
        bind_ip: str = "",
        receive_timeout: float | None = 1.0,
        send_timeout: float | None = 1.0,
    ) -> None:
        self.remote = (str(remote_ip), int(remote_port))
        self._receive_timeout = _check_timeout(receive_timeout)
        self._send_timeout = _check_timeout(send_timeout)
        self.last_sender = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise TransportError(f"cannot create UDP socket: {exc}") from exc
        try:
            sock.bind((bind_ip, int(local_port)))
            sock.setblocking(False)
        except (OSError, OverflowError) as exc:
            sock.close()
            raise TransportError(f"cannot bind UDP port {local_port}: {exc}") from exc
        self._sock: socket.socket | None = sock

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def local_address(self) -> tuple[str, int]:
        """Address and port the socket is bound to."""
        return self._open_socket().getsockname()

    def _open_socket(self) -> socket.socket:
        if self._sock is None:
            raise TransportError("UDP transport is closed")
        return self._sock

    def send(self, data) -> int:
        """Send one datagram to the remote endpoint; return the bytes sent."""
        sock = self._open_socket()
        payload = bytes(data)
        _, writable, _ = select.select([], [sock], [], self._send_timeout)
        if not writable:
            raise TransportError("UDP send timed out")
        try:
            return sock.sendto(payload, self.remote)
        except OSError as exc:
            raise TransportError(f"UDP send failed: {exc}") from exc

    def receive(self, size: int = DEFAULT_RECEIVE_SIZE) -> bytes:
        """Receive one datagram of at most ``size`` bytes, or ``b""`` on timeout."""
        size = _check_size(size)
        sock = self._open_socket()
        readable, _, _ = select.select([sock], [], [], self._receive_timeout)
        if not readable:
            return b""
        try:
            data, sender = sock.recvfrom(size)
        except BlockingIOError:
            return b""
        except OSError as exc:
            raise TransportError(f"UDP receive failed: {exc}") from exc
        self.last_sender = sender
        return data

    def set_receive_timeout(self, seconds) -> None:
        self._receive_timeout = _check_timeout(seconds)

    def set_send_timeout(self, seconds) -> None:
        self._send_timeout = _check_timeout(seconds)

    def close(self) -> None:
        """Close the socket; closing twice is harmless."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "UdpTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class SerialTransport:
    """A serial port (or any pyserial URL) opened at a given baud rate."""

    def __init__(
        self,
        port: str = "/dev/ttyACM0",
        baudrate: int = 4000000,
        timeout: float | None = 0.01,
    ) -> None:
        self.port = port
        self.baudrate = int(baudrate)
        try:
            self._serial = serial.serial_for_url(
                port, baudrate=self.baudrate, timeout=_check_timeout(timeout)
            )
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"cannot open serial port {port}: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._serial is None

    def _open_port(self):
        if self._serial is None:
            raise TransportError("serial transport is closed")
        return self._serial

    def send(self, data) -> int:
        """Write bytes to the port; return the count written."""
        port = self._open_port()
        payload = bytes(data)
        try:
            written = port.write(payload)
            port.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"serial write failed: {exc}") from exc
        return len(payload) if written is None else written

    def receive(self, size: int = DEFAULT_RECEIVE_SIZE) -> bytes:
        """Read what is available, up to ``size`` bytes, or ``b""`` on timeout."""
        size = _check_size(size)
        port = self._open_port()
        try:
            first = port.read(1)
            if not first:
                return b""
            extra = min(size - 1, port.in_waiting)
            return first + (port.read(extra) if extra > 0 else b"")
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"serial read failed: {exc}") from exc

    def close(self) -> None:
        """Close the port; closing twice is harmless."""
        if self._serial is not None:
            self._serial.close()
            self._serial = None

    def __enter__(self) -> "SerialTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()