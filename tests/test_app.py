from tellolink.app.main import build_parser


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.ip is None
    assert args.record is None
    assert args.no_video is False
    assert args.log_level == "INFO"


def test_parser_flags():
    args = build_parser().parse_args(
        ["--ip", "192.168.10.2", "--record", "out.ts", "--no-video", "--log-level", "DEBUG"]
    )
    assert args.ip == "192.168.10.2"
    assert args.record == "out.ts"
    assert args.no_video is True
    assert args.log_level == "DEBUG"
