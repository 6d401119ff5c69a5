from dataclasses import dataclass
from typing import Optional


@dataclass
class RawDocument:
    """Lo que sale del parser: bloques de texto limpios + metadata."""
    title:             str
    source_path:       str
    blocks:            list[str]   # en orden de lectura
    detected_language: Optional[str] = None
