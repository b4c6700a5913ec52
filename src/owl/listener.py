"""Packet listener: receive, decode, log, record.

Pulls one raw packet at a time from a receiver, decodes it and hands
successful readings to a telemetry sink.  Weather packets are skipped
quietly; any other rejected packet is logged and counted, and the next
packet is processed as usual.

Example:
    >>> from owl.listener import Listener
    >>> from owl.stream_receiver import StreamReceiver
    >>> listener = Listener(StreamReceiver(sys.stdin.buffer), telemetry)
    >>> listener.receive(0.5)
"""

import logging

from owl.packet import PacketError, WeatherPacket, decode
from owl.reading import ElectricityReading, fmt_power

log = logging.getLogger(__name__)


class Listener:
    """Decodes packets from a receiver and records them.

    Args:
        receiver: Object with ``recv(timeout_s) -> bytes``.
        sink: Object with ``record(reading)``, ``record_weather()`` and
            ``record_error(kind)``.
    """

    def __init__(self, receiver, sink):
        """Initialize the listener."""
        self._receiver = receiver
        self._sink = sink

    def receive(self, timeout_s: float) -> ElectricityReading | None:
        """Receive and process one packet.

        Returns:
            The decoded reading, or None on timeout, weather packet or
            rejected packet.
        """
        raw = self._receiver.recv(timeout_s)
        if not raw:
            log.debug("no packet within %.1fs", timeout_s)
            return None

        return self.process(raw)

    def process(self, raw: bytes) -> ElectricityReading | None:
        """Decode *raw* and record the outcome."""
        try:
            reading = decode(raw)
        except WeatherPacket:
            log.debug("skipping weather packet")
            self._sink.record_weather()
            return None
        except PacketError as exc:
            log.warning("rejected packet (%s): %s", exc.kind.value, exc)
            self._sink.record_error(exc.kind)
            return None

        log.info(
            "electricity reading id=%s power=[%s, %s, %s] battery=%.0f%% "
            "rssi=%.0f lqi=%.0f",
            reading.id,
            fmt_power(reading.channels[0]),
            fmt_power(reading.channels[1]),
            fmt_power(reading.channels[2]),
            reading.battery, reading.rssi, reading.lqi,
        )
        self._sink.record(reading)
        return reading
