from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import os


DEFAULT_SETTINGS_PATH = "config/settings.yaml"


@dataclass(frozen=True)
class RegistrySettings:
    bridge: str
    escape_hatch_authority: str
    escape_hatch_destination: str


@dataclass(frozen=True)
class ForwarderSettings:
    address: str
    giver_id: int
    receiver_id: int


@dataclass(frozen=True)
class Settings:
    env: str
    redis_url: str
    redis_consumer_group: str
    registry: RegistrySettings
    template_address: str
    forwarders: tuple[ForwarderSettings, ...] = field(default_factory=tuple)
    tokens: tuple[str, ...] = field(default_factory=tuple)


def load_settings(path: str | Path | None = None) -> Settings:
    p = Path(path or os.getenv("FORWARDER_SETTINGS") or DEFAULT_SETTINGS_PATH)

    # Keep imports optional at module import time (tests/tools may not need YAML).
    try:
        import yaml  # type: ignore
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "PyYAML is required to load config/settings.yaml. Install with: pip install pyyaml"
        ) from e

    data: Dict[str, Any] = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    redis_section = data.get("redis", {})
    redis_url = os.getenv("FORWARDER_REDIS_URL") or redis_section["url"]

    reg = data["registry"]
    registry = RegistrySettings(
        bridge=str(reg["bridge"]),
        escape_hatch_authority=str(reg["escape_hatch_authority"]),
        escape_hatch_destination=str(reg["escape_hatch_destination"]),
    )

    forwarders = []
    for item in data.get("forwarders") or []:
        giver_id = int(item["giver_id"])
        receiver_id = int(item["receiver_id"])
        if giver_id < 0 or receiver_id < 0:
            raise ValueError(f"forwarder ids must be >= 0: {item}")
        forwarders.append(ForwarderSettings(address=str(item["address"]), giver_id=giver_id, receiver_id=receiver_id))

    return Settings(
        env=data.get("env", "dev"),
        redis_url=redis_url,
        redis_consumer_group=redis_section.get("stream", {}).get("consumer_group", "forwarder"),
        registry=registry,
        template_address=str(data["template_address"]),
        forwarders=tuple(forwarders),
        tokens=tuple(str(t) for t in data.get("tokens") or []),
    )
