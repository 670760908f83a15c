"""
reStrike VTA - Main entry point

Binds the PSS UDP listener (optionally fed by the match simulator) and
serves the web API.
"""

import argparse
import logging
import sys
import threading

from .config import load_config, set_config
from .core.state import state
from .errors import BindError, ListenerError
from .protocol.dispatcher import Dispatcher
from .protocol.table import DefinitionTable
from .simulator.fake_console import MatchSimulator, UdpSender
from .udp.server import UdpServer


def setup_logging(debug: bool = False):
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )


def run_udp_listener(server, stop_event):
    """
    UDP receive loop thread.

    Runs until the stop event is set or the socket fails.
    """
    logger = logging.getLogger("udp_listener")
    logger.info("UDP listener started")

    try:
        server.serve_forever(stop_event)
    except ListenerError as e:
        logger.error(f"UDP listener failed: {e}")
    finally:
        server.close()
        logger.info("UDP listener stopped")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="reStrike VTA - PSS UDP ingest"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to config file",
        default=None
    )
    parser.add_argument(
        "--simulate", "-s",
        action="store_true",
        help="Feed the listener from the match simulator (no console required)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--udp-port", "-u",
        type=int,
        help="UDP listen port (default: 6000)",
        default=None
    )
    parser.add_argument(
        "--web-port", "-p",
        type=int,
        help="Web server port (default: 8080)",
        default=None
    )
    parser.add_argument(
        "--protocol-file",
        help="Protocol schema file (default: bundled PSS schema)",
        default=None
    )
    parser.add_argument(
        "--no-web",
        action="store_true",
        help="Run the UDP listener without the web API"
    )
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Load configuration
    config = load_config(args.config)

    # Apply command line overrides
    if args.simulate:
        config.simulator.enabled = True
    if args.debug:
        config.debug = True
    if args.udp_port is not None:
        config.udp.port = args.udp_port
    if args.web_port is not None:
        config.web.port = args.web_port
    if args.protocol_file:
        config.udp.protocol_file = args.protocol_file
    if args.no_web:
        config.web.enabled = False

    set_config(config)

    # Setup logging
    setup_logging(config.debug)
    logger = logging.getLogger("restrike")

    logger.info("=" * 50)
    logger.info("reStrike VTA - PSS UDP ingest")
    logger.info("=" * 50)

    # Initialize components
    table = DefinitionTable()
    dispatcher = Dispatcher(table)
    server = UdpServer(table=table, dispatcher=dispatcher, stats=state, buffer_size=config.udp.buffer_size)

    try:
        server.bind(config.udp.host, config.udp.port)
    except BindError as e:
        logger.error(str(e))
        return 1

    count = server.load_protocol_file(config.udp.protocol_file or None)
    if count == 0:
        logger.warning("No protocol definitions loaded, all streams will be dropped")

    stop_event = threading.Event()

    # Setup simulator
    simulator = None
    sender = None
    if config.simulator.enabled:
        logger.info("Starting in SIMULATION mode")
        simulator = MatchSimulator(
            round_seconds=config.simulator.round_seconds,
            rounds=config.simulator.rounds,
            break_seconds=config.simulator.break_seconds,
            speed_multiplier=config.simulator.speed_multiplier,
        )
        sender = UdpSender(config.simulator.target_host, server.server_address[1])
        simulator.set_on_datagram(sender.send)

    # Start UDP listener thread
    udp_thread = threading.Thread(
        target=run_udp_listener,
        args=(server, stop_event),
        daemon=True
    )
    udp_thread.start()

    if simulator:
        simulator.start()
        state.simulator_running = True

    try:
        if config.web.enabled:
            from .web.app import create_app, socketio, set_simulator

            set_simulator(simulator)
            app = create_app(server)

            logger.info(f"Starting web server on http://{config.web.host}:{config.web.port}")
            logger.info("Press Ctrl+C to stop")

            socketio.run(
                app,
                host=config.web.host,
                port=config.web.port,
                debug=False,
                use_reloader=False,
                allow_unsafe_werkzeug=True
            )
        else:
            logger.info("Press Ctrl+C to stop")
            while udp_thread.is_alive():
                udp_thread.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        stop_event.set()
        if simulator:
            simulator.stop()
        if sender:
            sender.close()
        udp_thread.join(timeout=2.0)

    logger.info("reStrike stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
