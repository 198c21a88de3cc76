"""Tests for EnvironConfig layering and typed getters."""

import pytest

from app.shared.config import EnvironConfig, config


@pytest.fixture
def environ_config(monkeypatch):
    monkeypatch.setenv("SMOOCHES_TEST_FLAG", "true")
    monkeypatch.setenv("SMOOCHES_TEST_PORT", "9001")
    monkeypatch.setenv("SMOOCHES_TEST_LIST", " stun:a:1 , ,stun:b:2 ")
    monkeypatch.setenv("SMOOCHES_TEST_BLANK", "   ")
    monkeypatch.setenv("SMOOCHES_TEST_BAD_INT", "lots")
    config.reload()
    yield config
    monkeypatch.undo()
    config.reload()


class TestEnvironConfig:
    def test_is_singleton(self):
        assert EnvironConfig() is config

    def test_process_environment_is_loaded(self, environ_config):
        assert "SMOOCHES_TEST_FLAG" in environ_config
        assert environ_config["SMOOCHES_TEST_PORT"] == "9001"

    def test_env_example_defaults_are_loaded(self, environ_config):
        assert environ_config.get("SIGNALING_WS_PATH") is not None

    def test_blank_value_counts_as_unset(self, environ_config):
        assert environ_config.get("SMOOCHES_TEST_BLANK", "fallback") == "fallback"
        with pytest.raises(KeyError):
            environ_config["SMOOCHES_TEST_BLANK"]

    def test_typed_getters(self, environ_config):
        assert environ_config.get_bool("SMOOCHES_TEST_FLAG") is True
        assert environ_config.get_bool("SMOOCHES_TEST_MISSING", default=True) is True
        assert environ_config.get_int("SMOOCHES_TEST_PORT", 1) == 9001
        assert environ_config.get_int("SMOOCHES_TEST_MISSING", 7) == 7
        assert environ_config.get_list("SMOOCHES_TEST_LIST") == ["stun:a:1", "stun:b:2"]
        assert environ_config.get_list("SMOOCHES_TEST_MISSING", "x,y") == ["x", "y"]

    def test_bad_integer_names_the_key(self, environ_config):
        with pytest.raises(ValueError, match="SMOOCHES_TEST_BAD_INT"):
            environ_config.get_int("SMOOCHES_TEST_BAD_INT", 0)
