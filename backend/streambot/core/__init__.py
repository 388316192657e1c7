"""Core modules for the stream tracker bot."""

from .cooldowns import CommandCooldowns, CooldownActive
from .health_server import HealthCheckServer
from .logging import setup_logging

__all__ = [
    "CommandCooldowns",
    "CooldownActive",
    "HealthCheckServer",
    "setup_logging",
]
