from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stocksim.config import ConfigManager, ConfigValidator, create_config_manager
from stocksim.models import AppConfig, ProviderOverride
from stocksim.providers.registry import ProviderRegistry


def test_missing_or_broken_config_falls_back_to_defaults(tmp_path: Path) -> None:
    manager = ConfigManager(config_path=tmp_path / "config.json")
    config = manager.get_config()
    assert config.max_attempts == 4
    assert config.rate_window_mode == "sliding"
    assert config.synthetic_history is False

    broken = tmp_path / "broken.json"
    broken.write_text("{oops", encoding="utf-8")
    assert ConfigManager(config_path=broken).get_config() == AppConfig()

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"max_attempts": 0}), encoding="utf-8")
    assert ConfigManager(config_path=invalid).get_config() == AppConfig()


def test_config_round_trip_and_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "nested" / "config.json"
    manager = create_config_manager(str(path))
    manager.update_provider_override("sina", ProviderOverride(max_calls_per_minute=5, timeout_sec=3.0))
    assert path.exists()

    monkeypatch.setenv("STOCKSIM_CONFIG_PATH", str(path))
    reloaded = ConfigManager().get_config()
    assert reloaded.provider_overrides["sina"].max_calls_per_minute == 5

    registry = ProviderRegistry(overrides=reloaded.provider_overrides)
    assert registry.get_config("sina").max_calls_per_minute == 5
    assert registry.get_config("sina").timeout_sec == 3.0
    assert registry.get_config("sina").max_calls_per_hour == 800
    assert registry.get_config("tencent").max_calls_per_minute == 60


def test_validator_messages() -> None:
    config = AppConfig(
        provider_order=["tencent", "tencent"],
        provider_overrides={
            "yahoo": ProviderOverride(),
            "sina": ProviderOverride(max_calls_per_minute=900, max_calls_per_hour=800),
        },
    )
    errors = ConfigValidator.validate_app_config(config)
    assert "provider_order cannot contain duplicates" in errors
    assert "provider_overrides[yahoo]: unknown provider: yahoo" in errors
    assert "provider_overrides[sina]: max_calls_per_minute cannot exceed max_calls_per_hour" in errors
    assert ConfigValidator.validate_app_config(AppConfig()) == []


def test_registry_defaults() -> None:
    registry = ProviderRegistry()
    assert registry.names() == ["tencent", "eastmoney", "sina", "xueqiu"]
    assert registry.history_sources() == ["eastmoney", "xueqiu"]
    assert registry.get_config("xueqiu").display_name == "雪球"
    with pytest.raises(ValueError):
        ProviderRegistry(order=["yahoo"])
