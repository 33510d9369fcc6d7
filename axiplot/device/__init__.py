"""Device drivers used by the AxiDraw controller."""

from .ebb import EiBotBoard, find_ebb_port, find_ebb_ports
from .mock import MockEiBotBoard

__all__ = ["EiBotBoard", "find_ebb_port", "find_ebb_ports", "MockEiBotBoard"]
