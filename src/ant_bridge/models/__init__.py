"""Data models for channel configuration and trainer readings."""

from .channel import ChannelConfig
from .readings import TrainerState
