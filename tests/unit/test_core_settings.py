from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from src.core.settings import load_settings


REPO_SETTINGS = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"


def _write(tmp_path: Path, body: str) -> Path:
    p = tmp_path / "settings.yaml"
    p.write_text(textwrap.dedent(body).strip(), encoding="utf-8")
    return p


def test_repo_settings_load() -> None:
    s = load_settings(REPO_SETTINGS)
    assert s.env == "dev"
    assert s.redis_consumer_group == "forwarder"
    assert s.forwarders[0].giver_id == 5
    assert s.forwarders[0].receiver_id == 9
    assert len(s.tokens) == 1


def test_settings_env_override(tmp_path: Path, monkeypatch) -> None:
    p = _write(
        tmp_path,
        """
        redis:
          url: redis://localhost:6379/0
        registry:
          bridge: "0xb1"
          escape_hatch_authority: "0xa1"
          escape_hatch_destination: "0xd1"
        template_address: "0xf0"
        """,
    )
    monkeypatch.setenv("FORWARDER_REDIS_URL", "redis://other:6379/1")
    s = load_settings(p)
    assert s.redis_url == "redis://other:6379/1"
    assert s.redis_consumer_group == "forwarder"
    assert s.forwarders == ()
    assert s.registry.escape_hatch_destination == "0xd1"


def test_settings_path_from_env(tmp_path: Path, monkeypatch) -> None:
    p = _write(
        tmp_path,
        """
        env: test
        redis:
          url: redis://localhost:6379/0
        registry:
          bridge: "0xb1"
          escape_hatch_authority: "0xa1"
          escape_hatch_destination: "0xd1"
        template_address: "0xf0"
        """,
    )
    monkeypatch.setenv("FORWARDER_SETTINGS", str(p))
    monkeypatch.delenv("FORWARDER_REDIS_URL", raising=False)
    assert load_settings().env == "test"


def test_settings_reject_negative_ids(tmp_path: Path) -> None:
    p = _write(
        tmp_path,
        """
        redis:
          url: redis://localhost:6379/0
        registry:
          bridge: "0xb1"
          escape_hatch_authority: "0xa1"
          escape_hatch_destination: "0xd1"
        template_address: "0xf0"
        forwarders:
          - address: "0xf1"
            giver_id: -1
            receiver_id: 2
        """,
    )
    with pytest.raises(ValueError):
        load_settings(p)
