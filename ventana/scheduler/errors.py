# scheduler/errors.py
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ventana.scheduler.models import TranslatableUnit


class SchedulerError(Exception):
    """Base de los errores del pipeline de scheduling."""
    pass


class ValidationError(SchedulerError):
    """
    Unidad mal formada. Se rechaza en la frontera (enqueue devuelve False);
    nunca llega a emitirse como evento de error.
    """
    pass


class TranslationFailure(SchedulerError):
    """El traductor rechazó o falló para una unidad. Aislado por unidad."""

    def __init__(self, unit: "TranslatableUnit", cause: BaseException):
        self.unit  = unit
        self.cause = cause
        super().__init__(f"Fallo al traducir {unit.id}: {type(cause).__name__}: {cause}")


class QuotaExhausted(SchedulerError):
    """
    El coste de una sola unidad supera un límite duro (TPM).
    Fallo permanente: reintentar no cambia nada.
    """

    def __init__(self, unit: "TranslatableUnit", tokens: int, limit: int):
        self.unit   = unit
        self.tokens = tokens
        self.limit  = limit
        super().__init__(
            f"La unidad {unit.id} estima {tokens} tokens y el límite por minuto es {limit}"
        )
