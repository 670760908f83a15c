"""
reStrike Web Application

Flask-based API with WebSocket support for real-time PSS events.
"""

import logging
from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from ..config import get_config
from ..errors import ParseError
from ..protocol.definitions import load_protocol_file
from ..udp.server import UdpServer

logger = logging.getLogger(__name__)

socketio = SocketIO(cors_allowed_origins="*")

# Simulator reference (set by main app)
_simulator = None


def set_simulator(sim):
    """Set the simulator instance for web control."""
    global _simulator
    _simulator = sim


def create_app(server: UdpServer) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        server: UDP server whose table, dispatcher and state the API exposes

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    config = get_config()
    app.config["SECRET_KEY"] = "restrike-secret-key"
    app.config["DEBUG"] = config.web.debug

    state = server.stats
    table = server.table

    # Initialize SocketIO
    socketio.init_app(app)

    # Forward decoded events and state changes to WebSocket clients
    def on_event(event):
        socketio.emit("pss_event", event.to_dict())

    def on_state_change():
        socketio.emit("state_update", state.to_dict())

    server.dispatcher.add_listener(on_event)
    state.add_listener(on_state_change)

    # ============ API Routes ============

    @app.route("/api/status", methods=["GET"])
    def get_status():
        """Get current system state."""
        return jsonify(state.to_dict())

    @app.route("/api/events", methods=["GET"])
    def get_events():
        """Get the most recent decoded events."""
        return jsonify({"events": state.recent_events()})

    @app.route("/api/stats/reset", methods=["POST"])
    def reset_stats():
        """Clear datagram counters and event history."""
        state.reset_stats()
        return jsonify({"status": "ok"})

    @app.route("/api/protocols", methods=["GET"])
    def get_protocols():
        """List loaded protocol definitions."""
        snapshot = table.snapshot()
        return jsonify({
            "count": len(snapshot),
            "streams": sorted(snapshot.streams),
            "definitions": snapshot.to_dict(),
        })

    @app.route("/api/protocols/reload", methods=["POST"])
    def reload_protocols():
        """Reload protocol definitions while the listener keeps running."""
        data = request.get_json(silent=True) or {}
        path = data.get("path") or get_config().udp.protocol_file or None

        try:
            definitions = load_protocol_file(path)
        except ParseError as e:
            logger.warning(f"Protocol reload failed: {e}")
            return jsonify({"error": str(e)}), 400

        count = table.replace(definitions)
        state.definitions_loaded = count
        return jsonify({"status": "ok", "count": count})

    @app.route("/api/simulator/start", methods=["POST"])
    def start_simulator():
        """Start the match simulator."""
        if _simulator is None:
            return jsonify({"error": "Simulator not available"}), 503

        _simulator.start()
        state.simulator_running = True
        return jsonify({"status": "ok"})

    @app.route("/api/simulator/stop", methods=["POST"])
    def stop_simulator():
        """Stop the match simulator."""
        if _simulator is None:
            return jsonify({"error": "Simulator not available"}), 503

        _simulator.stop()
        state.simulator_running = False
        return jsonify({"status": "ok"})

    @app.route("/api/simulator/reset", methods=["POST"])
    def reset_simulator():
        """Reset the match simulator."""
        if _simulator is None:
            return jsonify({"error": "Simulator not available"}), 503

        _simulator.reset()
        state.reset_stats()
        return jsonify({"status": "ok"})

    # ============ WebSocket Events ============

    @socketio.on("connect")
    def handle_connect():
        """Handle client connection."""
        logger.info("WebSocket client connected")
        emit("state_update", state.to_dict())

    @socketio.on("disconnect")
    def handle_disconnect(reason=None):
        """Handle client disconnection."""
        logger.info("WebSocket client disconnected")

    @socketio.on("request_state")
    def handle_request_state():
        """Handle state request from client."""
        emit("state_update", state.to_dict())

    return app
