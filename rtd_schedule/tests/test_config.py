"""Tests for configuration lookup"""

import types

import pytest

import rtd_schedule.config as config
from rtd_schedule.config import get_config, get_required_config


@pytest.fixture
def local_config(monkeypatch):
    """Install a local.py override module"""
    local = types.ModuleType("rtd_schedule.config.local")
    local.PROBE_ROUTE = "FF1"
    monkeypatch.setattr(config, "local_config", local)
    return local


def test_defaults():
    assert get_config("PROBE_ROUTE") == "B"
    assert get_config("TIMEZONE") == "America/Denver"
    assert get_config("NOT_A_SETTING", 42) == 42


def test_local_overrides_default(local_config):
    assert get_config("PROBE_ROUTE") == "FF1"
    assert get_config("TIMEZONE") == "America/Denver"


def test_required_config_missing():
    with pytest.raises(ValueError):
        get_required_config("NOT_A_SETTING")
    assert get_required_config("CACHE_VERSION") == 3
