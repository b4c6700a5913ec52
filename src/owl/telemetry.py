"""In-process telemetry sink for decoded readings.

Keeps counters (readings, weather packets, rejected packets) and gauges
(headline power, battery, signal, per-channel power and energy) in a
``prometheus_client`` registry owned by the sink.  The listener thread
writes; the exporter's request threads read.

Example:
    >>> from owl.telemetry import Telemetry
    >>> t = Telemetry(prefix="owl_electricity", channel=0)
    >>> t.record(reading)
    >>> t.snapshot()["readings"]
    1
"""

import re
import threading

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from owl.packet import NUM_CHANNELS, PacketErrorKind
from owl.reading import ElectricityReading

DEFAULT_PREFIX = "owl_electricity"

# Classic Prometheus metric name syntax.
PREFIX_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")

_ERROR_KINDS = [k for k in PacketErrorKind if k is not PacketErrorKind.WEATHER]


def validate_prefix(prefix: str) -> None:
    """Check that *prefix* can start a Prometheus metric name.

    Raises:
        ValueError: If *prefix* is empty or contains invalid characters.
    """
    if not PREFIX_RE.fullmatch(prefix):
        raise ValueError(
            "prefix must match [a-zA-Z_:][a-zA-Z0-9_:]*, got %r" % prefix
        )


class Telemetry:
    """Counters and gauges updated once per received packet.

    Args:
        prefix: Metric name prefix.
        channel: Index (0-2) of the channel reported as the headline
            ``power`` gauge.

    Raises:
        ValueError: If *prefix* is not a valid metric name or *channel*
            is out of range.
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX, channel: int = 0):
        """Create the registry and its metrics."""
        validate_prefix(prefix)
        if not 0 <= channel < NUM_CHANNELS:
            raise ValueError(
                "channel must be in range 0-%d, got %d"
                % (NUM_CHANNELS - 1, channel)
            )
        self.prefix = prefix
        self.channel = channel
        self.registry = CollectorRegistry()
        self._lock = threading.Lock()
        self._last: ElectricityReading | None = None

        p, r = prefix, self.registry
        self._readings = Counter(
            p + "_readings", "Electricity readings decoded", registry=r)
        self._weather = Counter(
            p + "_weather", "Weather packets skipped", registry=r)
        self._errors = Counter(
            p + "_errors", "Packets rejected, by reason", ["kind"], registry=r)
        for kind in _ERROR_KINDS:
            self._errors.labels(kind=kind.value)

        self._power = Gauge(
            p + "_power", "Instantaneous power of the headline channel",
            registry=r)
        self._battery = Gauge(
            p + "_battery", "Transmitter battery level (percent)", registry=r)
        self._rssi = Gauge(p + "_rssi", "Received signal strength", registry=r)
        self._lqi = Gauge(p + "_lqi", "Link quality indicator", registry=r)
        self._timestamp = Gauge(
            p + "_timestamp_seconds", "Device time of the last reading",
            registry=r)
        self._channel_power = Gauge(
            p + "_channel_power", "Instantaneous power per channel",
            ["channel", "units"], registry=r)
        self._channel_energy = Gauge(
            p + "_channel_energy", "Energy used today per channel",
            ["channel", "units"], registry=r)

    def record(self, reading: ElectricityReading) -> None:
        """Count *reading* and make it the source of the gauges."""
        with self._lock:
            self._readings.inc()
            self._last = reading
            self._power.set(reading.channels[self.channel].power)
            self._battery.set(reading.battery)
            self._rssi.set(reading.rssi)
            self._lqi.set(reading.lqi)
            self._timestamp.set(reading.timestamp.timestamp())
            # Units may change between readings; drop the old series.
            self._channel_power.clear()
            self._channel_energy.clear()
            for i, chan in enumerate(reading.channels):
                self._channel_power.labels(
                    channel=str(i), units=chan.power_units).set(chan.power)
                self._channel_energy.labels(
                    channel=str(i), units=chan.energy_units).set(chan.energy)

    def record_weather(self) -> None:
        """Count a skipped weather packet."""
        self._weather.inc()

    def record_error(self, kind: PacketErrorKind) -> None:
        """Count a rejected packet under *kind*."""
        if kind is PacketErrorKind.WEATHER:
            self.record_weather()
            return
        self._errors.labels(kind=kind.value).inc()

    @property
    def last(self) -> ElectricityReading | None:
        """The most recently recorded reading, or None."""
        with self._lock:
            return self._last

    def _count(self, name: str, **labels) -> int:
        """Read a counter's current value from the registry."""
        value = self.registry.get_sample_value(
            "%s_%s_total" % (self.prefix, name), labels or None)
        return int(value or 0)

    def snapshot(self) -> dict:
        """Return counters and the last reading as a JSON-ready dict."""
        last = self.last
        return {
            "readings": self._count("readings"),
            "weather": self._count("weather"),
            "errors": {k.value: self._count("errors", kind=k.value)
                       for k in _ERROR_KINDS},
            "last": last.to_dict() if last is not None else None,
        }

    def exposition(self) -> str:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry).decode("utf-8")
