#!/usr/bin/env python3
"""Unlock Monitor web bridge.

Runs the monitor in the background and bridges it to the host UI:
events stream out as JSON over SSE, and the lifecycle verbs (start /
stop) plus host-reported lock state come in over HTTP.

Usage:
    python3 web_app.py                       # monitor.yaml, real sensors
    python3 web_app.py --demo                # simulated sensors + lock toggling
    python3 web_app.py --autostart --port 5001
"""

__version__ = "1.0.0"

import argparse
import logging
from typing import Dict, List, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from unlock_monitor import EventBus, EventSink, MonitorSettings, UnlockMonitor
from unlock_monitor.config import load_config, source_configs
from unlock_monitor.data_source import DataSource
from unlock_monitor.registry import get_source_class

# Import sources to trigger @register_source decorators
import sources  # noqa: F401
from sources.lock_source import LockSignalSource, ManualLockProxy

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


def load_sources(config: Dict, bus: EventBus, settings: MonitorSettings,
                 demo: bool = False) -> List[DataSource]:
    """Instantiate the collaborator sources listed in config."""
    created = []
    for src_cfg in source_configs(config):
        src_type = src_cfg["type"]
        src_id = src_cfg["id"]

        cls = get_source_class(src_type)
        if cls is None:
            logger.warning("Unknown source type: %s (for %s)", src_type, src_id)
            continue

        if demo:
            src_cfg["demo"] = True
        if src_type == "orientation":
            src_cfg.setdefault("interval", settings.sample_interval)

        try:
            created.append(cls(src_id, bus, src_cfg))
            logger.info("Created source: %s (%s)", src_id, src_type)
        except Exception as exc:
            logger.error("Failed to create source %s: %s", src_id, exc)
    return created


def create_monitor(config_path: Optional[str] = "monitor.yaml", demo: bool = False,
                   ticker: bool = True) -> UnlockMonitor:
    """Build one monitor from a YAML config. The caller owns it."""
    config = load_config(config_path)
    settings = MonitorSettings.from_dict(config.get("monitor"))
    bus = EventBus()
    return UnlockMonitor(
        settings=settings,
        sink=EventSink(),
        bus=bus,
        sources=load_sources(config, bus, settings, demo=demo),
        ticker=ticker,
    )


def _manual_lock_source(monitor: UnlockMonitor) -> Optional[LockSignalSource]:
    for src in monitor.sources:
        if isinstance(src, LockSignalSource) and isinstance(src.proxy, ManualLockProxy):
            return src
    return None


def create_app(monitor: UnlockMonitor) -> Flask:
    """Create the Flask application around an existing monitor."""
    app = Flask(__name__)
    CORS(app)  # host UI may be served from another origin
    app.config["MONITOR"] = monitor

    # ─── Routes: health ───

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "version": __version__,
            "running": monitor.running,
            "sources": len(monitor.sources),
        })

    # ─── Routes: event stream ───

    @app.route("/api/events/stream")
    def event_stream():
        """SSE endpoint. One `event: <TYPE>` record per monitor event.

        Only one consumer is served; a new connection takes over from
        the previous one.
        """
        def generate():
            for item in monitor.sink.stream(timeout=KEEPALIVE_SECONDS):
                if item is None:
                    yield ": keepalive\n\n"
                    continue
                event_type, encoded = item
                yield f"event: {event_type}\ndata: {encoded}\n\n"

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    @app.route("/api/events/latest")
    def latest_events():
        """Most recent event of each type."""
        return jsonify(monitor.sink.get_latest())

    # ─── Routes: lifecycle verbs ───

    @app.route("/api/monitor/start", methods=["POST"])
    def start_monitoring():
        monitor.start()
        return jsonify({"running": monitor.running})

    @app.route("/api/monitor/stop", methods=["POST"])
    def stop_monitoring():
        monitor.stop()
        return jsonify({"running": monitor.running})

    @app.route("/api/monitor/status")
    def monitor_status():
        return jsonify(monitor.status())

    # ─── Routes: host-reported lock state ───

    @app.route("/api/lock", methods=["POST"])
    def report_lock():
        """Accept {"locked": bool} from the host for the manual proxy."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not isinstance(data.get("locked"), bool):
            return jsonify({"error": "JSON body with boolean 'locked' required"}), 400

        source = _manual_lock_source(monitor)
        if source is None:
            return jsonify({"error": "no manual lock proxy configured"}), 409

        source.set_locked(data["locked"])
        return jsonify({
            "running": monitor.running,
            "lock_state": monitor.tracker.state.value,
        })

    return app


def main():
    parser = argparse.ArgumentParser(description="Unlock Monitor web bridge")
    parser.add_argument("--demo", action="store_true", help="Use simulated sensors and lock state")
    parser.add_argument("--port", type=int, default=5000, help="Web server port")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--config", default="monitor.yaml", help="Config file path")
    parser.add_argument("--autostart", action="store_true",
                        help="Start monitoring immediately instead of waiting for /api/monitor/start")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--version", action="version", version=f"Unlock Monitor {__version__}")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    logger.info("Unlock Monitor v%s starting", __version__)

    monitor = create_monitor(args.config, demo=args.demo)
    if args.autostart:
        monitor.start()

    app = create_app(monitor)
    logger.info("Event bridge at http://%s:%d", args.host, args.port)

    try:
        app.run(host=args.host, port=args.port, threaded=True, debug=False)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        monitor.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
