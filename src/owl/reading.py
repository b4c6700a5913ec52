"""Electricity reading dataclasses.

Value types produced by the packet decoder and consumed by the listener,
telemetry sink and exporter.  Readings are immutable and created fresh
for every decoded packet.

Example:
    >>> from owl.reading import ChannelReading, fmt_power
    >>> c = ChannelReading(power=305.0, power_units="w",
    ...                    energy=1863.39, energy_units="wh")
    >>> fmt_power(c)
    '305.00w'
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class ChannelReading:
    """One sensing channel: instantaneous power and energy for the day.

    Units are carried as received (e.g. ``"w"`` and ``"wh"``), never
    converted.
    """

    power: float = 0.0
    power_units: str = ""
    energy: float = 0.0
    energy_units: str = ""


@dataclass(frozen=True)
class ElectricityReading:
    """A single electricity reading from an OWL Intuition transmitter.

    ``channels`` always holds exactly three entries, in the order the
    device sent them.
    """

    id: str
    timestamp: datetime
    rssi: float
    lqi: float
    battery: float
    channels: tuple[ChannelReading, ChannelReading, ChannelReading] = field(
        default=(ChannelReading(), ChannelReading(), ChannelReading())
    )

    @classmethod
    def zero(cls) -> "ElectricityReading":
        """Return the zero-valued reading."""
        return cls(id="", timestamp=EPOCH, rssi=0.0, lqi=0.0, battery=0.0)

    def to_dict(self) -> dict:
        """Return a JSON-ready dict; the timestamp becomes ISO-8601."""
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        d["channels"] = [asdict(c) for c in self.channels]
        return d


def fmt_power(chan: ChannelReading) -> str:
    """Format a channel's power for display.

    Example:
        >>> fmt_power(ChannelReading(21.0, "w", 3.01, "wh"))
        '21.00w'
    """
    return f"{chan.power:.2f}{chan.power_units}"


def fmt_energy(chan: ChannelReading) -> str:
    """Format a channel's energy for display."""
    return f"{chan.energy:.2f}{chan.energy_units}"
