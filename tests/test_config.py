# file: tests/test_config.py
from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from scamshield.config import load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in list(os.environ):
        if key.startswith("SCAMSHIELD_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults_use_one_canonical_identifier_pair() -> None:
    settings = load_settings()
    assert settings.app_group_id == "group.com.scamshield.shared"
    assert settings.extension_id == "com.scamshield.app.CallDirectory"
    assert settings.collection_key == "BlockedNumbers"


def test_precedence_env_over_dotenv_over_yaml(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    yaml_path = tmp_path / "scamshield.yaml"
    yaml_path.write_text(
        "api_base_url: http://yaml.test\nblock_threshold: 40\nreload_max_retries: 4\n",
        encoding="utf-8",
    )
    env_path = tmp_path / ".env"
    env_path.write_text(
        "SCAMSHIELD_BLOCK_THRESHOLD=50\nSCAMSHIELD_API_BASE_URL=http://dotenv.test\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SCAMSHIELD_API_BASE_URL", "http://env.test")

    settings = load_settings(yaml_path=yaml_path, env_path=env_path)
    assert settings.api_base_url == "http://env.test"
    assert settings.block_threshold == 50
    assert settings.reload_max_retries == 4


def test_container_and_weights_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SCAMSHIELD_CONTAINER_ROOT", str(tmp_path / "shared"))
    monkeypatch.setenv("SCAMSHIELD_DECISION_WEIGHTS", '{"risk_score": 0.5}')
    settings = load_settings()
    container = settings.shared_container()
    assert container.blocklist_path == tmp_path / "shared" / settings.app_group_id / "blocklist.sqlite3"
    assert settings.decision_weights == {"risk_score": 0.5}


def test_invalid_values_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCAMSHIELD_BLOCK_THRESHOLD", "101")
    with pytest.raises(ValidationError):
        load_settings()
