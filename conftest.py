"""
Test conftest - isolate IBISDM_* environment variables and .env files so
Settings() behaves the same on every machine, and provide the small
reference domain most tests talk about.
"""
import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    """Remove IBISDM_* env vars for every test and disable .env loading so a
    developer's local configuration never leaks into assertions."""
    for var in list(os.environ):
        if var.upper().startswith("IBISDM_"):
            monkeypatch.delenv(var, raising=False)

    import ibisdm.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_prefix="IBISDM_",
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)
    monkeypatch.setattr(settings_module, "_singleton", None)


@pytest.fixture
def domain():
    """Trip-planning vocabulary used across the unit tests."""
    from ibisdm.semantics.domain import Domain
    return Domain(
        preds0=["return"],
        preds1={
            "dest": "location",
            "depart": "location",
            "how": "means",
            "price": "amount",
        },
        sorts={
            "location": ["paris", "london", "berlin"],
            "means": ["plane", "train"],
            "amount": ["p232", "p345"],
        },
    )
