"""Packet decoding for the OWL Intuition multicast/UDP messages.

The Intuition gateway broadcasts one XML document per datagram.  Two
kinds are recognised:

  <electricity id="...">  -- decoded into an ElectricityReading
  <weather id="...">      -- recognised but not decoded

An electricity packet looks like this (whitespace added):

  <electricity id='443719005443'>
    <timestamp>1509950911</timestamp>
    <signal rssi='-68' lqi='48'/>
    <battery level='100%'/>
    <chan id='0'><curr units='w'>305.00</curr><day units='wh'>1863.39</day></chan>
    <chan id='1'>...</chan>
    <chan id='2'>...</chan>
  </electricity>

Element and attribute names are matched by local name, so a namespace
prefix on any of them is ignored.  Decoding is a pure function of its
input and does no logging; callers decide what to report.

Example:
    >>> from owl.packet import decode, WeatherPacket
    >>> reading = decode(raw)
    >>> reading.channels[0].power
    305.0
"""

import enum
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone

from owl.reading import ChannelReading, ElectricityReading

# -- Protocol constants ------------------------------------------------------

# Default multicast group and port of the Intuition gateway.
MULTICAST_ADDRESS = "224.192.32.19:22600"

NUM_CHANNELS = 3

ROOT_ELECTRICITY = "electricity"
ROOT_WEATHER = "weather"

# Number syntax accepted for float and integer fields: no digit-group
# underscores, no surrounding whitespace.
_FLOAT_RE = re.compile(
    r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?"
    r"|[+-]?(inf(inity)?|nan)",
    re.IGNORECASE,
)
_INT_RE = re.compile(r"[+-]?[0-9]+")


# -- Errors ------------------------------------------------------------------


class PacketErrorKind(enum.Enum):
    """Closed set of reasons a packet can be rejected."""

    MALFORMED = "malformed"
    WEATHER = "weather"
    INVALID_BATTERY = "invalid_battery"
    CHANNEL_COUNT = "channel_count"


class PacketError(ValueError):
    """Base class for every decode failure."""

    kind = PacketErrorKind.MALFORMED


class MalformedPacket(PacketError):
    """Bytes are not XML, or the root element is not a known packet kind."""

    kind = PacketErrorKind.MALFORMED


class WeatherPacket(PacketError):
    """A weather packet was received; these are not decoded."""

    kind = PacketErrorKind.WEATHER

    def __init__(self, message: str = "weather packets are not decoded"):
        super().__init__(message)


class InvalidBatteryFormat(PacketError):
    """The battery level attribute is not of the form ``<float>%``."""

    kind = PacketErrorKind.INVALID_BATTERY

    def __init__(self, level: str):
        super().__init__(
            "unexpected value for battery level: got %r, want <float>%%" % level
        )
        self.level = level


class UnexpectedChannelCount(PacketError):
    """The packet does not carry exactly three ``chan`` elements."""

    kind = PacketErrorKind.CHANNEL_COUNT

    def __init__(self, count: int):
        super().__init__(
            "expected %d channels, received %d" % (NUM_CHANNELS, count)
        )
        self.count = count


# -- Element helpers ---------------------------------------------------------


def _local(name) -> str:
    """Strip a ``{namespace}`` prefix from a tag or attribute name."""
    if not isinstance(name, str):
        return ""
    return name.rpartition("}")[2]


def _children(elem: ET.Element, name: str) -> list[ET.Element]:
    """Return the direct children of *elem* whose local name is *name*."""
    return [child for child in elem if _local(child.tag) == name]


def _child(elem: ET.Element | None, name: str) -> ET.Element | None:
    """Return the first direct child named *name*, or None."""
    if elem is None:
        return None
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


def _attr(elem: ET.Element | None, name: str) -> str:
    """Return attribute *name* of *elem*, or ``""`` when absent."""
    if elem is None:
        return ""
    for key, value in elem.attrib.items():
        if _local(key) == name:
            return value
    return ""


def _text(elem: ET.Element | None) -> str:
    """Return the stripped text content of *elem*, or ``""``."""
    if elem is None or elem.text is None:
        return ""
    return elem.text.strip()


def _float(raw: str, what: str) -> float:
    """Parse *raw* as a float; empty input reads as 0.0.

    Raises:
        MalformedPacket: If *raw* is not a number.
    """
    raw = raw.strip()
    if not raw:
        return 0.0
    if not _FLOAT_RE.fullmatch(raw):
        raise MalformedPacket("bad %s value: %r" % (what, raw))
    return float(raw)


def _timestamp(raw: str) -> datetime:
    """Convert Unix epoch seconds to an aware UTC datetime.

    An empty value reads as the epoch.

    Raises:
        MalformedPacket: If *raw* is not an integer or is out of range.
    """
    if not raw:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if not _INT_RE.fullmatch(raw):
        raise MalformedPacket("bad timestamp value: %r" % raw)
    seconds = int(raw, 10)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise MalformedPacket("timestamp out of range: %d" % seconds) from None


# -- Decoding ----------------------------------------------------------------


def _parse(data: bytes) -> ET.Element:
    """Parse *data* as XML and return the root element.

    Raises:
        MalformedPacket: On any parse failure.
    """
    try:
        return ET.fromstring(data)
    except (ET.ParseError, ValueError, LookupError) as exc:
        raise MalformedPacket("unable to decode packet: %s" % exc) from None


def classify(data: bytes) -> str:
    """Return the local name of the packet's root element.

    Example:
        >>> classify(b"<weather id='1'/>")
        'weather'

    Raises:
        MalformedPacket: If *data* is not well-formed XML.
    """
    return _local(_parse(data).tag)


def decode(data: bytes) -> ElectricityReading:
    """Decode one raw packet into an ElectricityReading.

    Checks run in a fixed order and the first failure wins: XML parse,
    root element kind, field values, battery level, channel count.

    Raises:
        MalformedPacket: If *data* is not XML, the root element is not
            ``electricity`` or ``weather``, or a numeric field does not
            parse.
        WeatherPacket: If the root element is ``weather``.
        InvalidBatteryFormat: If the battery level is not ``<float>%``.
        UnexpectedChannelCount: If there are not exactly three channels.
    """
    root = _parse(data)
    kind = _local(root.tag)

    if kind == ROOT_WEATHER:
        raise WeatherPacket()
    if kind != ROOT_ELECTRICITY:
        raise MalformedPacket("unknown packet kind: %r" % kind)

    return _decode_electricity(root)


def _decode_electricity(root: ET.Element) -> ElectricityReading:
    """Extract and validate the fields of an ``electricity`` element."""
    timestamp = _timestamp(_text(_child(root, "timestamp")))

    signal = _child(root, "signal")
    rssi = _float(_attr(signal, "rssi"), "rssi")
    lqi = _float(_attr(signal, "lqi"), "lqi")

    # Channel values parse before the battery and count checks.
    chans = _children(root, "chan")
    parsed = [_decode_channel(chan) for chan in chans]

    level = _attr(_child(root, "battery"), "level")
    number = level.replace("%", "")
    if not _FLOAT_RE.fullmatch(number):
        raise InvalidBatteryFormat(level)
    battery = float(number)

    if len(parsed) != NUM_CHANNELS:
        raise UnexpectedChannelCount(len(parsed))

    return ElectricityReading(
        id=_attr(root, "id"),
        timestamp=timestamp,
        rssi=rssi,
        lqi=lqi,
        battery=battery,
        channels=(parsed[0], parsed[1], parsed[2]),
    )


def _decode_channel(chan: ET.Element) -> ChannelReading:
    """Extract power (``curr``) and energy (``day``) from one channel.

    The channel's own ``id`` attribute is not consulted; position in
    the packet decides which slot a channel fills.
    """
    curr = _child(chan, "curr")
    day = _child(chan, "day")
    return ChannelReading(
        power=_float(_text(curr), "curr"),
        power_units=_attr(curr, "units"),
        energy=_float(_text(day), "day"),
        energy_units=_attr(day, "units"),
    )
