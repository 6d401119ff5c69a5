# scheduler/models.py
import hashlib
import math
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ventana.scheduler.errors import ValidationError

_WHITESPACE_RE = re.compile(r"\s+")

# ~4 caracteres por token: suficiente para control de admisión
_CHARS_PER_TOKEN = 4


class UnitType(Enum):
    TITLE     = "title"
    PARAGRAPH = "paragraph"
    LIST      = "list"
    TABLE     = "table"
    OTHER     = "other"


class EntryState(Enum):
    PENDING    = "pending"
    DISPATCHED = "dispatched"
    COMPLETED  = "completed"
    FAILED     = "failed"

    @property
    def is_live(self) -> bool:
        return self in (EntryState.PENDING, EntryState.DISPATCHED)


def normalize_text(text: str) -> str:
    """NFC + espacios colapsados. Dos textos con la misma forma normalizada son el mismo trabajo."""
    return _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFC", text)).strip()


def content_id(text: str) -> str:
    digest = hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()
    return f"seg_{digest[:16]}"


@dataclass(frozen=True)
class TranslatableUnit:
    """
    Fragmento de texto fuente candidato a traducción.
    Lo crea el extractor; el core nunca lo modifica.

    visible y document_position se calculan una sola vez al analizar
    el documento. top_y / bottom_y son opcionales (px) y solo los usan
    el renderer y el filtrado por región.
    """
    text:              str
    type:              UnitType      = UnitType.PARAGRAPH
    visible:           bool          = False
    document_position: Optional[int] = None
    top_y:             Optional[float] = None
    bottom_y:          Optional[float] = None
    id:                str           = field(init=False, compare=False)

    def __post_init__(self):
        # Siempre derivado del texto: es la clave de deduplicación
        object.__setattr__(self, "id", content_id(self.text))

    @property
    def normalized_text(self) -> str:
        return normalize_text(self.text)

    @property
    def length_chars(self) -> int:
        return len(self.text)

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @property
    def estimated_tokens(self) -> int:
        return math.ceil(self.length_chars / _CHARS_PER_TOKEN)

    @property
    def sort_position(self) -> float:
        """Posición para desempates; sin posición = +∞ (última)."""
        if self.document_position is None:
            return math.inf
        return self.document_position

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TranslatableUnit":
        """
        Construye una unidad desde un dict suelto (p. ej. JSON de un extractor externo).
        Acepta claves snake_case o camelCase. Lanza ValidationError si falta
        texto o si type / position no son válidos.
        """
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("La unidad no tiene texto traducible")

        raw_type = data.get("type", UnitType.PARAGRAPH.value)
        try:
            unit_type = raw_type if isinstance(raw_type, UnitType) else UnitType(str(raw_type).lower())
        except ValueError as e:
            raise ValidationError(f"Tipo de unidad desconocido: {raw_type!r}") from e

        position = data.get("document_position", data.get("documentPosition", data.get("position")))
        if position is not None:
            if isinstance(position, bool) or not isinstance(position, int) or position < 0:
                raise ValidationError(f"document_position inválida: {position!r}")

        return cls(
            text              = text,
            type              = unit_type,
            visible           = bool(data.get("visible", data.get("isVisible", False))),
            document_position = position,
            top_y             = data.get("top_y", data.get("topY")),
            bottom_y          = data.get("bottom_y", data.get("bottomY")),
        )


@dataclass
class QueueEntry:
    """Unidad + metadata de scheduling. Vive en la cola hasta su estado terminal."""
    unit:        TranslatableUnit
    priority:    int
    enqueued_at: float
    state:       EntryState = EntryState.PENDING
    attempt:     int = 0
    error:       Optional[str] = None
    finished_at: Optional[float] = None

    @property
    def id(self) -> str:
        return self.unit.id


@dataclass(frozen=True)
class Admission:
    """
    Respuesta del RateLimiter. allowed=False con wait_ms finito no es un error:
    es un reintento programado. wait_ms infinito = nunca admisible.
    """
    allowed: bool
    wait_ms: float = 0.0
    reason:  Optional[str] = None

    @property
    def is_permanent(self) -> bool:
        return not self.allowed and math.isinf(self.wait_ms)


@dataclass(frozen=True)
class Progress:
    current:      int
    total:        int
    percentage:   int
    current_unit: Optional[TranslatableUnit] = None


@dataclass(frozen=True)
class ScheduleReport:
    total:    int
    enqueued: int
    skipped:  int


@dataclass(frozen=True)
class Region:
    """Franja vertical del documento, en px."""
    top:    float
    bottom: float

    @property
    def is_empty(self) -> bool:
        return self.bottom <= self.top

    @property
    def height(self) -> float:
        return max(0.0, self.bottom - self.top)

    def overlaps(self, top: Optional[float], bottom: Optional[float]) -> bool:
        if top is None or bottom is None:
            return False
        return not (bottom < self.top or top > self.bottom)
