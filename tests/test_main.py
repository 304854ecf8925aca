from config.settings import API_PORT, BIND_PORT
from main import build_parser


class TestCli:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.port == BIND_PORT
        assert args.api_port == API_PORT
        assert not args.open
        assert not args.api

    def test_options(self):
        args = build_parser().parse_args(
            ["--port", "2200", "--user", "root", "--pass", "toor", "--api", "--api-port", "8080"]
        )
        assert (args.port, args.user, args.password) == (2200, "root", "toor")
        assert args.api and args.api_port == 8080
