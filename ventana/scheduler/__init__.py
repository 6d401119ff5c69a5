from ventana.scheduler.config import (
    DispatchConfig,
    PriorityWeights,
    RateLimits,
    SchedulerConfig,
    ViewportConfig,
)
from ventana.scheduler.contracts import Extractor, Renderer, TranslationResult, Translator
from ventana.scheduler.dispatcher import Dispatcher, DispatcherState, DispatcherStatus
from ventana.scheduler.errors import (
    QuotaExhausted,
    SchedulerError,
    TranslationFailure,
    ValidationError,
)
from ventana.scheduler.frontier import FrontierTracker
from ventana.scheduler.models import (
    Admission,
    EntryState,
    Progress,
    QueueEntry,
    Region,
    ScheduleReport,
    TranslatableUnit,
    UnitType,
)
from ventana.scheduler.queue import QueueStats, TranslationQueue
from ventana.scheduler.ranker import PriorityRanker
from ventana.scheduler.rate_limiter import RateLimitUsage, RateLimiter

__all__ = [
    "SchedulerConfig", "DispatchConfig", "PriorityWeights", "RateLimits", "ViewportConfig",
    "Extractor", "Renderer", "Translator", "TranslationResult",
    "Dispatcher", "DispatcherState", "DispatcherStatus",
    "SchedulerError", "ValidationError", "TranslationFailure", "QuotaExhausted",
    "FrontierTracker",
    "Admission", "EntryState", "Progress", "QueueEntry", "Region",
    "ScheduleReport", "TranslatableUnit", "UnitType",
    "TranslationQueue", "QueueStats",
    "PriorityRanker",
    "RateLimiter", "RateLimitUsage",
]
