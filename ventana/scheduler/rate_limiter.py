# scheduler/rate_limiter.py
import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
from typing import Callable

from ventana.scheduler.models import Admission

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitUsage:
    requests_in_window: int
    tokens_in_window:   int
    daily_count:        int
    rpm_limit:          int
    tpm_limit:          int
    rpd_limit:          int


class RateLimiter:
    """
    Control de admisión con tres cuotas simultáneas:
    requests/min y tokens/min en ventana deslizante de 60 s,
    y requests/día con reinicio a medianoche local.

    Se instancia por sesión y se inyecta al Dispatcher (nada de singletons),
    así cada test tiene su propio estado.

    record() debe llamarse de forma síncrona justo antes de despachar,
    nunca después del await de la traducción.
    """

    def __init__(
        self,
        rpm_limit: int = 15,
        tpm_limit: int = 250_000,
        rpd_limit: int = 1000,
        clock:     Callable[[], float] = time.time,
    ):
        self.rpm_limit = rpm_limit
        self.tpm_limit = tpm_limit
        self.rpd_limit = rpd_limit
        self._clock    = clock

        self._events: deque[tuple[float, int]] = deque()   # (timestamp, tokens)
        self._daily_count = 0
        self._day: date   = self._local_date(clock())

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------

    def can_admit(self, estimated_tokens: int) -> Admission:
        """
        Orden de chequeo: cuota diaria → RPM → TPM.
        Si bloquea, wait_ms es el tiempo hasta que el evento más antiguo
        salga de su ventana (o hasta medianoche para la diaria).
        """
        now = self._clock()
        self._roll_day(now)
        self._prune(now)

        if self._daily_count >= self.rpd_limit:
            return Admission(
                allowed = False,
                wait_ms = _seconds_until_midnight(now) * 1000,
                reason  = "rpd",
            )

        if len(self._events) >= self.rpm_limit:
            return Admission(allowed=False, wait_ms=self._oldest_wait_ms(now), reason="rpm")

        if estimated_tokens > self.tpm_limit:
            # Ninguna espera lo hace admisible
            return Admission(allowed=False, wait_ms=math.inf, reason="oversize")

        if self._tokens_in_window() + estimated_tokens > self.tpm_limit:
            return Admission(allowed=False, wait_ms=self._oldest_wait_ms(now), reason="tpm")

        return Admission(allowed=True)

    def record(self, tokens: int) -> None:
        now = self._clock()
        self._roll_day(now)
        self._events.append((now, max(0, int(tokens))))
        self._daily_count += 1
        logger.debug(
            "Request registrada: %d tokens | ventana %d/%d req | día %d/%d",
            tokens, len(self._events), self.rpm_limit,
            self._daily_count, self.rpd_limit,
        )

    def usage(self) -> RateLimitUsage:
        now = self._clock()
        self._roll_day(now)
        self._prune(now)
        return RateLimitUsage(
            requests_in_window = len(self._events),
            tokens_in_window   = self._tokens_in_window(),
            daily_count        = self._daily_count,
            rpm_limit          = self.rpm_limit,
            tpm_limit          = self.tpm_limit,
            rpd_limit          = self.rpd_limit,
        )

    def reset(self) -> None:
        self._events.clear()
        self._daily_count = 0
        self._day = self._local_date(self._clock())

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _prune(self, now: float) -> None:
        while self._events and now - self._events[0][0] >= _WINDOW_SECONDS:
            self._events.popleft()

    def _tokens_in_window(self) -> int:
        return sum(tokens for _, tokens in self._events)

    def _oldest_wait_ms(self, now: float) -> float:
        oldest = self._events[0][0] if self._events else now
        return max(0.0, (oldest + _WINDOW_SECONDS - now) * 1000)

    def _roll_day(self, now: float) -> None:
        today = self._local_date(now)
        if today != self._day:
            logger.info("Nuevo día (%s): contador diario reiniciado", today.isoformat())
            self._day = today
            self._daily_count = 0

    @staticmethod
    def _local_date(timestamp: float) -> date:
        return datetime.fromtimestamp(timestamp).date()


def _seconds_until_midnight(now: float) -> float:
    current  = datetime.fromtimestamp(now)
    midnight = datetime.combine(current.date() + timedelta(days=1), dt_time.min)
    return max(0.0, (midnight - current).total_seconds())
