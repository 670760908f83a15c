import socket

from restrike.config import get_config
from restrike.main import build_parser, main


def test_arguments():

    args = build_parser().parse_args(["--simulate", "-u", "6100", "--no-web", "--protocol-file", "pss.txt"])
    assert args.simulate
    assert args.udp_port == 6100
    assert args.no_web
    assert args.protocol_file == "pss.txt"
    assert args.web_port is None


def test_bind_failure_aborts_startup(tmp_path):

    blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    blocker.bind(("0.0.0.0", 0))
    port = blocker.getsockname()[1]

    try:
        result = main(["--config", str(tmp_path / "missing.json"), "--no-web", "--udp-port", str(port)])
    finally:
        blocker.close()

    assert result == 1
    assert get_config().udp.port == port
    assert get_config().web.enabled is False
