"""Radio channel configuration model."""

from __future__ import annotations

from dataclasses import dataclass

from ..protocol.messages import ChannelType

DEVICE_TYPE_BICYCLE_POWER = 11


@dataclass
class ChannelConfig:
    """Parameters for one ANT+ channel.

    Defaults describe an ANT+ bicycle power sensor acting as master.
    """

    number: int = 0
    channel_type: ChannelType = ChannelType.BIDIRECTIONAL_TRANSMIT
    network: int = 0
    device_number: int = 1
    device_type: int = DEVICE_TYPE_BICYCLE_POWER
    transmission_type: int = 5
    period: int = 8182  # 32768 / 8182 ~= 4.005 Hz
    rf_frequency: int = 57  # 2457 MHz

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "channel_type": self.channel_type.name.lower(),
            "network": self.network,
            "device_number": self.device_number,
            "device_type": self.device_type,
            "transmission_type": self.transmission_type,
            "period": self.period,
            "rf_frequency": self.rf_frequency,
        }
