"""Trainer reading model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TrainerState:
    """Latest power and cadence values reported by the equipment."""

    power: int = 0
    cadence: int = 0

    def to_dict(self) -> dict:
        return {"power": self.power, "cadence": self.cadence}
