# scheduler/config.py
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PriorityWeights:
    is_in_viewport: int = 100   # lo que el usuario está viendo va primero
    is_title:       int = 80
    is_important:   int = 60
    document_order: int = 1


@dataclass(frozen=True)
class RateLimits:
    """Defaults del plan gratuito de Gemini Flash-Lite."""
    rpm_limit: int = 15
    tpm_limit: int = 250_000
    rpd_limit: int = 1000


@dataclass(frozen=True)
class DispatchConfig:
    batch_size:              int   = 50
    max_concurrent_requests: int   = 3
    inter_batch_delay_ms:    float = 500


@dataclass(frozen=True)
class ViewportConfig:
    """Modo incremental: lotes pequeños para responder rápido al scroll."""
    batch_size:              int   = 3
    max_concurrent_requests: int   = 2
    margin_px:               float = 200
    frontier_cache_ttl_ms:   float = 1000
    scroll_throttle_ms:      float = 200


@dataclass(frozen=True)
class SchedulerConfig:
    rate_limits:      RateLimits      = field(default_factory=RateLimits)
    dispatch:         DispatchConfig  = field(default_factory=DispatchConfig)
    viewport:         ViewportConfig  = field(default_factory=ViewportConfig)
    priority_weights: PriorityWeights = field(default_factory=PriorityWeights)
    target_language:  str = "zh-TW"
    source_language:  str = "auto"

    def __post_init__(self):
        _require_positive("rpm_limit", self.rate_limits.rpm_limit)
        _require_positive("tpm_limit", self.rate_limits.tpm_limit)
        _require_positive("rpd_limit", self.rate_limits.rpd_limit)
        _require_positive("batch_size", self.dispatch.batch_size)
        _require_positive("max_concurrent_requests", self.dispatch.max_concurrent_requests)
        _require_positive("viewport.batch_size", self.viewport.batch_size)
        _require_positive("viewport.max_concurrent_requests", self.viewport.max_concurrent_requests)
        _require_non_negative("inter_batch_delay_ms", self.dispatch.inter_batch_delay_ms)
        _require_non_negative("viewport_margin_px", self.viewport.margin_px)
        _require_non_negative("frontier_cache_ttl_ms", self.viewport.frontier_cache_ttl_ms)
        _require_non_negative("scroll_throttle_ms", self.viewport.scroll_throttle_ms)
        if not self.target_language.strip():
            raise ValueError("target_language no puede estar vacío")


def _require_positive(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{name} debe ser un número positivo (recibido: {value!r})")


def _require_non_negative(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"{name} no puede ser negativo (recibido: {value!r})")
