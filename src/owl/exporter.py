"""Flask application exposing telemetry over HTTP.

Serves the telemetry registry in the Prometheus text format and the
latest reading and counters as JSON.

Example:
    >>> from owl.exporter import create_app
    >>> app = create_app(Telemetry())
    >>> app.run(port=8080)
"""

from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from owl.telemetry import Telemetry


def create_app(telemetry: Telemetry) -> Flask:
    """Create and configure the Flask application.

    Args:
        telemetry: Sink shared with the listener thread.
    """
    app = Flask(__name__)

    @app.route("/metrics")
    def metrics() -> Response:
        """Return all counters and gauges in text exposition format."""
        return Response(generate_latest(telemetry.registry),
                        content_type=CONTENT_TYPE_LATEST)

    @app.route("/api/reading")
    def api_reading() -> tuple:
        """Return the most recent electricity reading.

        Response JSON:
            {"id": "...", "timestamp": "...", "battery": 100.0,
             "channels": [{"power": 305.0, "power_units": "w", ...}, ...]}
        """
        last = telemetry.last
        if last is None:
            return jsonify({"error": "no reading received yet"}), 404
        return jsonify(last.to_dict()), 200

    @app.route("/api/stats")
    def api_stats() -> tuple:
        """Return packet counters.

        Response JSON:
            {"readings": 12, "weather": 3, "errors": {"malformed": 0, ...}}
        """
        snap = telemetry.snapshot()
        del snap["last"]
        return jsonify(snap), 200

    return app
