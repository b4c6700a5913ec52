"""Command-line entry point.

Two modes:
- decode: decode capture files (one packet per line) and print readings
- serve: decode packets piped on stdin and export telemetry over HTTP

Datagrams reach ``serve`` through an external pipe, for example::

    socat -u UDP4-RECV:22600,ip-add-membership=224.192.32.19:0.0.0.0 - \\
        | owl serve -c owl.toml

Shuts down cleanly on SIGINT or SIGTERM.
"""

import argparse
import json
import logging
import signal
import sys
import threading

from owl.config import RECV_TIMEOUT_S, find_config, load_config
from owl.exporter import create_app
from owl.listener import Listener
from owl.reading import ElectricityReading, fmt_power
from owl.stream_receiver import StreamReceiver
from owl.telemetry import Telemetry

log = logging.getLogger(__name__)

_shutdown = threading.Event()


def run_listener(receiver, sink, shutdown: threading.Event,
                 on_reading=None) -> int:
    """Run the receive loop until *shutdown* is set or input ends.

    Calls *on_reading* with every decoded reading, if given.
    Returns the number of readings decoded.
    """
    listener = Listener(receiver, sink)
    count = 0

    while not shutdown.is_set() and not getattr(receiver, "eof", False):
        reading = listener.receive(RECV_TIMEOUT_S)
        if reading is not None:
            count += 1
            if on_reading is not None:
                on_reading(reading)

    return count


def format_line(reading: ElectricityReading) -> str:
    """Format a reading as a one-line summary of channel 0.

    Example:
        >>> format_line(reading)
        '2017-11-06 06:48:31+00:00 : electricity reading : power=305.00w'
    """
    return "%s : electricity reading : power=%s" % (
        reading.timestamp, fmt_power(reading.channels[0]),
    )


def cmd_decode(args: argparse.Namespace) -> int:
    """Decode every packet in the given files and print the readings.

    Returns 1 if any packet was rejected (weather packets excluded).
    """
    telemetry = Telemetry()

    def emit(reading: ElectricityReading) -> None:
        if args.json:
            print(json.dumps(reading.to_dict()))
        else:
            print(format_line(reading))

    for path in args.paths:
        if path == "-":
            run_listener(StreamReceiver(sys.stdin.buffer), telemetry,
                         _shutdown, emit)
            continue
        with StreamReceiver(open(path, "rb")) as receiver:
            run_listener(receiver, telemetry, _shutdown, emit)

    snap = telemetry.snapshot()
    rejected = sum(snap["errors"].values())
    log.info(
        "%d readings, %d weather packets, %d rejected",
        snap["readings"], snap["weather"], rejected,
    )
    return 1 if rejected else 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Decode packets from stdin in the background and serve metrics."""
    cfg = load_config(find_config(args.config))

    telemetry = Telemetry(prefix=cfg["prefix"], channel=cfg["channel"])
    receiver = StreamReceiver(sys.stdin.buffer)
    worker = threading.Thread(
        target=run_listener, args=(receiver, telemetry, _shutdown),
        name="owl-listener", daemon=True,
    )

    signal.signal(signal.SIGTERM, signal.default_int_handler)
    log.info(
        "starting: http=%s:%d prefix=%s channel=%d",
        cfg["http_host"], cfg["http_port"], cfg["prefix"], cfg["channel"],
    )
    worker.start()
    try:
        create_app(telemetry).run(host=cfg["http_host"], port=cfg["http_port"])
    except KeyboardInterrupt:
        pass
    finally:
        _shutdown.set()
        log.info("shutting down")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the ``owl`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="owl", description="OWL Intuition packet decoder",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_decode = sub.add_parser("decode", help="decode capture files")
    p_decode.add_argument(
        "paths", nargs="+", metavar="PATH",
        help="capture file with one packet per line ('-' for stdin)",
    )
    p_decode.add_argument(
        "--json", action="store_true", help="print readings as JSON",
    )
    p_decode.set_defaults(func=cmd_decode)

    p_serve = sub.add_parser("serve", help="decode stdin and serve metrics")
    p_serve.add_argument("-c", "--config", help="path to TOML config file")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point -- parse args, configure logging, dispatch."""
    _shutdown.clear()

    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=level,
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
