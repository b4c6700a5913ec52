"""Shared pytest fixtures for owl tests."""

import pytest

SAMPLE = (
    b"<electricity id='443719005443'><timestamp>1509950911</timestamp>"
    b"<signal rssi='-68' lqi='48'/><battery level='100%'/>"
    b"<chan id='0'><curr units='w'>305.00</curr><day units='wh'>1863.39</day></chan>"
    b"<chan id='1'><curr units='w'>21.00</curr><day units='wh'>3.01</day></chan>"
    b"<chan id='2'><curr units='w'>270.26</curr><day units='wh'>0.00</day></chan>"
    b"</electricity>"
)

WEATHER = (
    b"<weather id='443719005443' code='113'>"
    b"<temperature>9.00</temperature><text>Clear/Sunny</text>"
    b"</weather>"
)

GARBAGE = "asjfd中文可以吗😂".encode("utf-8")

_CHANNELS = (("305.00", "1863.39"), ("21.00", "3.01"), ("270.26", "0.00"))


def make_chan(chan_id: int, power: str, energy: str) -> str:
    """Build one ``chan`` element."""
    return (
        "<chan id='{}'><curr units='w'>{}</curr>"
        "<day units='wh'>{}</day></chan>".format(chan_id, power, energy)
    )


def make_packet(
    dev_id: str = "443719005443",
    timestamp: str = "1509950911",
    battery: str = "100%",
    channels=_CHANNELS,
    rssi: str = "-68",
    lqi: str = "48",
) -> bytes:
    """Build an electricity packet; *channels* is (power, energy) pairs."""
    chans = "".join(
        make_chan(i, power, energy) for i, (power, energy) in enumerate(channels)
    )
    return (
        "<electricity id='{}'><timestamp>{}</timestamp>"
        "<signal rssi='{}' lqi='{}'/><battery level='{}'/>{}"
        "</electricity>".format(dev_id, timestamp, rssi, lqi, battery, chans)
    ).encode("utf-8")


class FakeReceiver:
    """Fake receiver that returns pre-configured packets, then b""."""

    def __init__(self, packets: list[bytes]):
        """Initialize with canned packets."""
        self._packets = list(packets)
        self.recv_count = 0

    @property
    def eof(self) -> bool:
        """True once every canned packet has been handed out."""
        return not self._packets

    def recv(self, timeout_s: float) -> bytes:
        """Return the next packet or empty bytes."""
        self.recv_count += 1
        if self._packets:
            return self._packets.pop(0)
        return b""


class RecordingSink:
    """Test double for Telemetry: records what it was given."""

    def __init__(self):
        """Initialize empty records."""
        self.readings = []
        self.weather = 0
        self.errors = []

    def record(self, reading) -> None:
        """Record a decoded reading."""
        self.readings.append(reading)

    def record_weather(self) -> None:
        """Count a weather packet."""
        self.weather += 1

    def record_error(self, kind) -> None:
        """Record the kind of a rejected packet."""
        self.errors.append(kind)


@pytest.fixture()
def sink():
    """Yield a fresh RecordingSink."""
    return RecordingSink()
