import logging

import pytest

import config


def test_truthy_flags() -> None:
    assert config._is_truthy_flag(" Yes ")
    assert config._is_truthy_flag("1")
    assert not config._is_truthy_flag("0")
    assert not config._is_truthy_flag(None)


def test_default_on_flags_only_switch_off_explicitly() -> None:
    assert config._is_falsy_flag(" Off ")
    assert config._is_falsy_flag("0")
    assert not config._is_falsy_flag("")
    assert not config._is_falsy_flag(None)
    assert not config._is_falsy_flag("maybe")


def test_positive_float_parsing() -> None:
    assert config._parse_positive_float_env("3.5", env_var="X", default=1.0) == 3.5
    assert config._parse_positive_float_env("  ", env_var="X", default=1.0) == 1.0
    assert config._parse_positive_float_env(None, env_var="X", default=1.0) == 1.0


@pytest.mark.parametrize("raw", ["abc", "0", "-2"])
def test_invalid_float_warns_and_uses_default(raw: str) -> None:
    with pytest.warns(RuntimeWarning):
        assert config._parse_positive_float_env(raw, env_var="GATE_REDIRECT_DELAY_SECONDS", default=2.0) == 2.0


def test_base_url_is_normalised(caplog) -> None:
    default = "http://localhost:5000/api"
    assert config._normalise_base_url(" https://api.example.com/api/ ", default=default) == "https://api.example.com/api"
    assert config._normalise_base_url("", default=default) == default

    with caplog.at_level(logging.WARNING):
        assert config._normalise_base_url("ftp://example.com", default=default) == default
    assert "expected an http(s) URL" in caplog.text


def test_paths_gain_leading_slash() -> None:
    assert config._normalise_path("agents", default="/x") == "/agents"
    assert config._normalise_path("/404", default="/x") == "/404"
    assert config._normalise_path(None, default="/x") == "/x"
