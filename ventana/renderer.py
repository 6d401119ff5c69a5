# ventana/renderer.py
import logging
from pathlib import Path
from typing import Iterable, Optional

from ventana.scheduler.contracts import Renderer
from ventana.scheduler.models import TranslatableUnit

logger = logging.getLogger(__name__)

_REVIEW_MARKER = "[⚠ PENDIENTE DE REVISIÓN]\n"
_OUTPUT_DIR    = Path.home() / ".ventana" / "output"


class DocumentRenderer(Renderer):
    """
    Guarda en memoria lo traducido por unidad y escribe el documento final.

    No sabe nada de modelos ni de scheduling: recibe (unidad, traducción)
    y expone el borde inferior de lo ya traducido para el FrontierTracker.
    """

    def __init__(self, output_dir: Path | None = None):
        self._output_dir   = output_dir or _OUTPUT_DIR
        self._translations: dict[str, str] = {}
        self._errors:       dict[str, str] = {}
        self._bottoms:      dict[str, float] = {}

    # ------------------------------------------------------------------
    # Contrato Renderer
    # ------------------------------------------------------------------

    def render(self, unit: TranslatableUnit, translated_text: str) -> None:
        self._translations[unit.id] = translated_text
        self._errors.pop(unit.id, None)
        if unit.bottom_y is not None:
            self._bottoms[unit.id] = unit.bottom_y

    def render_error(self, unit: TranslatableUnit, message: str) -> None:
        self._errors[unit.id] = message

    def discard_error(self, unit: TranslatableUnit) -> None:
        self._errors.pop(unit.id, None)

    def lowest_translated_bottom_y(self) -> Optional[float]:
        if not self._bottoms:
            return None
        return max(self._bottoms.values())

    def clear(self) -> None:
        self._translations.clear()
        self._errors.clear()
        self._bottoms.clear()

    # ------------------------------------------------------------------
    # Consulta y salida
    # ------------------------------------------------------------------

    def translation_for(self, unit: TranslatableUnit) -> Optional[str]:
        return self._translations.get(unit.id)

    def error_for(self, unit: TranslatableUnit) -> Optional[str]:
        return self._errors.get(unit.id)

    @property
    def translated_count(self) -> int:
        return len(self._translations)

    def build(self, units: Iterable[TranslatableUnit], output_filename: str) -> Path:
        """
        Escribe el documento en orden de lectura y devuelve la ruta.
        Orden de preferencia por unidad:
        1. traducción
        2. original con marca de revisión (la unidad falló)
        3. original tal cual (no llegó a traducirse)
        """
        self._output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self._output_dir / output_filename

        parts = [self._resolve_text(unit) for unit in units]
        output_path.write_text("\n\n".join(parts) + "\n", encoding="utf-8")
        logger.info("Output escrito en: %s", output_path)
        return output_path

    def _resolve_text(self, unit: TranslatableUnit) -> str:
        translated = self._translations.get(unit.id)
        if translated:
            return translated
        if unit.id in self._errors:
            return f"{_REVIEW_MARKER}{unit.text}"
        return unit.text
