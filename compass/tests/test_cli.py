import pytest

from compass.cli import build_parser


def test_defaults():
    args = build_parser().parse_args(["https://example.com/"])
    assert args.url == "https://example.com/"
    assert args.strategy == "curiosity_driven"
    assert args.max_actions == 100
    assert args.allow_domain == []
    assert not args.stay_within_domain


def test_repeated_allow_domain():
    args = build_parser().parse_args(
        ["https://example.com/", "--allow-domain", "example.com", "--allow-domain", "cdn.example.com", "--seed", "3"]
    )
    assert args.allow_domain == ["example.com", "cdn.example.com"]
    assert args.seed == 3


def test_unknown_strategy_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["https://example.com/", "--strategy", "greedy"])
