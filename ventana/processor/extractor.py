import logging
import math
import re
from typing import Optional

from ventana.processor.models import RawDocument
from ventana.processor.txt_parser import TextParser
from ventana.scheduler.contracts import Extractor
from ventana.scheduler.models import Region, TranslatableUnit, UnitType

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r'^\s*#{1,6}\s+\S')
_CHAPTER_RE = re.compile(r'^\s*(chapter|capítulo|chapitre|kapitel)\s+\w+', re.IGNORECASE)
_LIST_RE    = re.compile(r'^\s*([-*+•]|\d+[.)])\s+')
_TABLE_RE   = re.compile(r'^\s*\|.*\|\s*$')
_FENCE_RE   = re.compile(r'^\s*```')


class DocumentExtractor(Extractor):
    """
    Extractor para documentos de texto: maqueta los bloques del RawDocument
    como una página virtual y los convierte en TranslatableUnit.

    Cada bloque ocupa ceil(len(línea) / chars_per_line) líneas de
    line_height_px, con block_gap_px entre bloques. visible se calcula una
    sola vez contra el viewport inicial [0, viewport_height_px].
    """

    def __init__(
        self,
        document:           RawDocument,
        line_height_px:     float = 24,
        chars_per_line:     int   = 80,
        block_gap_px:       float = 16,
        viewport_height_px: float = 900,
    ):
        self._document = document
        self._units    = self._layout(
            document.blocks, line_height_px, chars_per_line, block_gap_px, viewport_height_px,
        )
        logger.debug(
            "Documento '%s' maquetado: %d unidades, %.0fpx de alto",
            document.title, len(self._units), self.document_height,
        )

    @classmethod
    def from_file(cls, file_path: str, **layout) -> "DocumentExtractor":
        return cls(TextParser().parse(file_path), **layout)

    @property
    def document(self) -> RawDocument:
        return self._document

    @property
    def units(self) -> list[TranslatableUnit]:
        return list(self._units)

    @property
    def document_height(self) -> float:
        if not self._units:
            return 0.0
        return self._units[-1].bottom_y or 0.0

    def get_candidate_units(self, region: Optional[Region] = None) -> list[TranslatableUnit]:
        if region is None:
            return list(self._units)
        if region.is_empty:
            return []
        return [u for u in self._units if region.overlaps(u.top_y, u.bottom_y)]

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    @staticmethod
    def _layout(
        blocks:          list[str],
        line_height:     float,
        chars_per_line:  int,
        gap:             float,
        viewport_height: float,
    ) -> list[TranslatableUnit]:
        units: list[TranslatableUnit] = []
        cursor = 0.0

        for position, block in enumerate(blocks):
            lines  = sum(max(1, math.ceil(len(line) / chars_per_line)) for line in block.split('\n'))
            top    = cursor
            bottom = top + lines * line_height

            units.append(TranslatableUnit(
                text              = block,
                type              = classify_block(block),
                visible           = top < viewport_height,
                document_position = position,
                top_y             = top,
                bottom_y          = bottom,
            ))
            cursor = bottom + gap

        return units


def classify_block(block: str) -> UnitType:
    """Heurística mínima de tipo por forma del bloque."""
    lines = [line for line in block.split('\n') if line.strip()]
    if not lines:
        return UnitType.OTHER

    first = lines[0]
    if _FENCE_RE.match(first):
        return UnitType.OTHER
    if len(lines) == 1 and (_HEADING_RE.match(first) or _CHAPTER_RE.match(first)):
        return UnitType.TITLE
    if all(_LIST_RE.match(line) for line in lines):
        return UnitType.LIST
    if len(lines) >= 2 and all(_TABLE_RE.match(line) for line in lines):
        return UnitType.TABLE
    return UnitType.PARAGRAPH
