import os
import re

from ventana.processor.models import RawDocument

# Una línea así abre su propio bloque aunque no haya línea en blanco antes
_HEADING_RE = re.compile(r'^\s*#{1,6}\s+\S')
_FENCE_RE   = re.compile(r'^\s*```')

SUPPORTED_EXTENSIONS = {'.txt', '.md'}


class UnsupportedFormatError(Exception):
    """El archivo no es texto plano ni markdown."""
    pass


class TextParser:
    """
    Parser para .txt y .md.

    Un bloque = texto separado por línea(s) en blanco. A diferencia de un
    chunker de libros, no fusiona bloques pequeños: cada bloque es una
    unidad visual del documento (título, párrafo, lista, tabla).
    Los bloques de código ``` se mantienen enteros aunque tengan líneas vacías.
    """

    def can_handle(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path)
        return ext.lower() in SUPPORTED_EXTENSIONS

    def parse(self, file_path: str) -> RawDocument:
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Archivo no encontrado: {file_path}")
        if not self.can_handle(file_path):
            ext = os.path.splitext(file_path)[1].lower()
            raise UnsupportedFormatError(
                f"Formato '{ext}' no soportado. "
                f"Formatos disponibles: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
            )

        raw = self._read_file(file_path)
        return RawDocument(
            title       = self._extract_title(raw, file_path),
            source_path = file_path,
            blocks      = self.split_blocks(raw),
        )

    def split_blocks(self, text: str) -> list[str]:
        blocks: list[str] = []
        current: list[str] = []
        in_fence = False

        def flush():
            block = '\n'.join(current).strip('\n')
            if block.strip():
                blocks.append(block)
            current.clear()

        for line in text.replace('\r\n', '\n').split('\n'):
            if _FENCE_RE.match(line):
                if not in_fence:
                    flush()
                current.append(line)
                in_fence = not in_fence
                if not in_fence:
                    flush()
                continue

            if in_fence:
                current.append(line)
                continue

            if not line.strip():
                flush()
            elif _HEADING_RE.match(line):
                flush()
                current.append(line)
                flush()
            else:
                current.append(line)

        flush()
        return blocks

    # ------------------------------------------------------------------ #
    #  Helpers privados                                                    #
    # ------------------------------------------------------------------ #

    def _read_file(self, file_path: str) -> str:
        """Lee el archivo intentando UTF-8 primero, latin-1 como fallback."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError:
            with open(file_path, 'r', encoding='latin-1') as f:
                return f.read()

    def _extract_title(self, text: str, file_path: str) -> str:
        first_line = text.strip().split('\n')[0].strip().lstrip('#').strip()
        words = first_line.split()
        if words and len(words) <= 10 and not first_line.endswith('.'):
            return first_line
        return os.path.splitext(os.path.basename(file_path))[0]
