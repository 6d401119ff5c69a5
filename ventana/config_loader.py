# ventana/config_loader.py
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from ventana.router.models import ModelConfig
from ventana.scheduler.config import (
    DispatchConfig,
    PriorityWeights,
    RateLimits,
    SchedulerConfig,
    ViewportConfig,
)

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path.home() / ".ventana" / "config.yaml"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

_KNOWN_KEYS = {
    "rpm_limit", "tpm_limit", "rpd_limit",
    "batch_size", "max_concurrent_requests", "inter_batch_delay_ms",
    "priority_weights", "frontier_cache_ttl_ms", "viewport_margin_px",
    "scroll_throttle_ms", "viewport", "target_language", "source_language",
    "models",
}


@dataclass
class AppConfig:
    scheduler: SchedulerConfig           = field(default_factory=SchedulerConfig)
    models:    list[ModelConfig]         = field(default_factory=list)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Carga ~/.ventana/config.yaml (o VENTANA_CONFIG_PATH).
    Resuelve ${VAR} en los api_key. Las opciones aceptan snake_case o camelCase.
    """
    path = Path(config_path or os.environ.get("VENTANA_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)

    if not path.exists():
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.ventana/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: se esperaba un mapping en la raíz del YAML")

    return parse_config(raw)


def parse_config(raw: dict) -> AppConfig:
    data = _snake_keys(raw)

    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        logger.warning("Opciones de config desconocidas (ignoradas): %s", ", ".join(sorted(unknown)))

    defaults_dispatch = DispatchConfig()
    defaults_viewport = ViewportConfig()
    viewport_section  = data.get("viewport") or {}

    scheduler = SchedulerConfig(
        rate_limits = RateLimits(
            rpm_limit = data.get("rpm_limit", RateLimits.rpm_limit),
            tpm_limit = data.get("tpm_limit", RateLimits.tpm_limit),
            rpd_limit = data.get("rpd_limit", RateLimits.rpd_limit),
        ),
        dispatch = DispatchConfig(
            batch_size              = data.get("batch_size", defaults_dispatch.batch_size),
            max_concurrent_requests = data.get("max_concurrent_requests", defaults_dispatch.max_concurrent_requests),
            inter_batch_delay_ms    = data.get("inter_batch_delay_ms", defaults_dispatch.inter_batch_delay_ms),
        ),
        viewport = ViewportConfig(
            batch_size              = viewport_section.get("batch_size", defaults_viewport.batch_size),
            max_concurrent_requests = viewport_section.get(
                "max_concurrent_requests", defaults_viewport.max_concurrent_requests,
            ),
            margin_px               = data.get("viewport_margin_px", defaults_viewport.margin_px),
            frontier_cache_ttl_ms   = data.get("frontier_cache_ttl_ms", defaults_viewport.frontier_cache_ttl_ms),
            scroll_throttle_ms      = data.get("scroll_throttle_ms", defaults_viewport.scroll_throttle_ms),
        ),
        priority_weights = PriorityWeights(**_weights(data.get("priority_weights") or {})),
        target_language  = str(data.get("target_language", SchedulerConfig.target_language)),
        source_language  = str(data.get("source_language", SchedulerConfig.source_language)),
    )

    return AppConfig(
        scheduler = scheduler,
        models    = _parse_models(data.get("models") or []),
    )


def _weights(section: dict) -> dict:
    allowed = {"is_in_viewport", "is_title", "is_important", "document_order"}
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"priority_weights desconocidos: {', '.join(sorted(unknown))}")
    return dict(section)


def _parse_models(entries: list) -> list[ModelConfig]:
    configs = []
    for entry in entries:
        if "name" not in entry:
            raise ValueError("Cada entrada de models necesita 'name'")
        configs.append(ModelConfig(
            name              = entry["name"],
            priority          = entry.get("priority", 99),
            daily_token_limit = entry.get("daily_token_limit", 1_000_000),
            api_key           = _resolve_env(entry.get("api_key")),
            model_id          = entry.get("model_id"),
            timeout_seconds   = entry.get("timeout_seconds", 60),
            temperature       = entry.get("temperature", 0.2),
        ))
    return sorted(configs, key=lambda c: c.priority)


def _snake_keys(value: Any) -> Any:
    """rpmLimit → rpm_limit, recursivo en dicts y listas."""
    if isinstance(value, dict):
        return {_CAMEL_RE.sub("_", str(k)).lower(): _snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
