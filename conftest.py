"""Shared fixtures: a stand-in for the ``ee`` module so tests need no Earth Engine account."""

import os
from unittest.mock import MagicMock

import pytest


class FakeEEException(Exception):
    pass


@pytest.fixture
def fake_ee():
    fake = MagicMock(name="ee")
    fake.EEException = FakeEEException
    return fake


@pytest.fixture
def patch_ee(monkeypatch, fake_ee):
    """Replace the ``ee`` name in the given modules with ``fake_ee``."""
    def _patch(*modules):
        for module in modules:
            monkeypatch.setattr(module, "ee", fake_ee)
        return fake_ee
    return _patch


@pytest.fixture
def clean_env(monkeypatch):
    """Drop GP_ variables from the environment for the duration of a test."""
    for key in list(os.environ):
        if key.startswith("GP_"):
            monkeypatch.delenv(key)
    return monkeypatch
