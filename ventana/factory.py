# ventana/factory.py
import logging
from pathlib import Path
from typing import Optional

from ventana.config_loader import AppConfig, load_config
from ventana.orchestrator import Orchestrator
from ventana.processor.extractor import DocumentExtractor
from ventana.renderer import DocumentRenderer
from ventana.router.claude import ClaudeAdapter
from ventana.router.gemini import GeminiAdapter
from ventana.router.router import Router
from ventana.router.translator import RouterTranslator
from ventana.scheduler.dispatcher import Dispatcher
from ventana.scheduler.frontier import FrontierTracker
from ventana.scheduler.queue import TranslationQueue
from ventana.scheduler.ranker import PriorityRanker
from ventana.scheduler.rate_limiter import RateLimiter
from ventana.storage.repository import Repository

logger = logging.getLogger(__name__)

_ADAPTERS = {
    "claude": ClaudeAdapter,
    "gemini": GeminiAdapter,
}

MODES = ("full", "viewport")


def build_orchestrator(
    document_path:      str,
    config_path:        Optional[str]  = None,
    db_path:            Optional[str]  = None,
    output_dir:         Optional[Path] = None,
    mode:               str            = "full",
    viewport_height_px: float          = 900,
    target_language:    Optional[str]  = None,
    source_language:    Optional[str]  = None,
    config:             Optional[AppConfig] = None,
) -> Orchestrator:
    """
    Ensambla el Orchestrator con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.

    mode: "full" usa los valores de dispatch del config; "viewport" usa los
    del bloque viewport (lotes pequeños, pocas peticiones simultáneas).
    """
    if mode not in MODES:
        raise ValueError(f"Modo desconocido: {mode!r} (usa {' | '.join(MODES)})")

    config    = config or load_config(config_path)
    scheduler = config.scheduler

    repo       = Repository(db_path=db_path)
    router     = Router(_build_models(repo, config))
    translator = RouterTranslator(router, source_language=source_language or scheduler.source_language)

    extractor = DocumentExtractor.from_file(document_path, viewport_height_px=viewport_height_px)
    renderer  = DocumentRenderer(output_dir)
    ranker    = PriorityRanker(scheduler.priority_weights)
    queue     = TranslationQueue(ranker=ranker)
    limiter   = RateLimiter(
        rpm_limit = scheduler.rate_limits.rpm_limit,
        tpm_limit = scheduler.rate_limits.tpm_limit,
        rpd_limit = scheduler.rate_limits.rpd_limit,
    )

    if mode == "viewport":
        batch_size     = scheduler.viewport.batch_size
        max_concurrent = scheduler.viewport.max_concurrent_requests
    else:
        batch_size     = scheduler.dispatch.batch_size
        max_concurrent = scheduler.dispatch.max_concurrent_requests

    dispatcher = Dispatcher(
        queue,
        limiter,
        translator,
        target_language or scheduler.target_language,
        batch_size              = batch_size,
        max_concurrent_requests = max_concurrent,
        inter_batch_delay_ms    = scheduler.dispatch.inter_batch_delay_ms,
        renderer                = renderer,
    )

    return Orchestrator(
        extractor          = extractor,
        queue              = queue,
        dispatcher         = dispatcher,
        frontier           = FrontierTracker(renderer, cache_ttl_ms=scheduler.viewport.frontier_cache_ttl_ms),
        renderer           = renderer,
        viewport_margin_px = scheduler.viewport.margin_px,
        scroll_throttle_ms = scheduler.viewport.scroll_throttle_ms,
    )


def _build_models(repo: Repository, config: AppConfig) -> list:
    """
    Construye los adaptadores disponibles.
    Si un adaptador no tiene api_key configurada, lo omite.
    """
    models = []

    for model_config in config.models:
        adapter_class = _ADAPTERS.get(model_config.name)
        if not adapter_class:
            logger.warning("Modelo desconocido en config: %s", model_config.name)
            continue
        if not model_config.api_key:
            logger.warning("%s: sin api_key, omitiendo", model_config.name)
            continue
        models.append(adapter_class(model_config, repo))

    if not models:
        raise RuntimeError(
            "Ningún modelo configurado. "
            "Revisa ~/.ventana/config.yaml y tus variables de entorno."
        )

    return models
