"""Frame codec, point-cloud parsing, transports and reader for Unitree L2 lidars."""

__version__ = "2.0.9"