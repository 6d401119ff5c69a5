from ventana.processor.extractor import DocumentExtractor, classify_block
from ventana.processor.models import RawDocument
from ventana.processor.txt_parser import TextParser, UnsupportedFormatError

__all__ = [
    "DocumentExtractor",
    "classify_block",
    "RawDocument",
    "TextParser",
    "UnsupportedFormatError",
]
