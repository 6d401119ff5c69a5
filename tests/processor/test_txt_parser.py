# tests/processor/test_txt_parser.py
import pytest

from ventana.processor.txt_parser import TextParser, UnsupportedFormatError


@pytest.fixture
def parser():
    return TextParser()


class TestSplitBlocks:

    def test_separa_por_lineas_en_blanco(self, parser):
        text = "Primer párrafo\nsigue aquí.\n\nSegundo párrafo.\n\n\n\nTercero."
        assert parser.split_blocks(text) == [
            "Primer párrafo\nsigue aquí.",
            "Segundo párrafo.",
            "Tercero.",
        ]

    def test_encabezado_es_su_propio_bloque(self, parser):
        text = "# Título\nTexto pegado al título."
        assert parser.split_blocks(text) == ["# Título", "Texto pegado al título."]

    def test_bloque_de_codigo_no_se_parte(self, parser):
        text = "Antes\n\n```\nx = 1\n\ny = 2\n```\n\nDespués"
        assert parser.split_blocks(text) == ["Antes", "```\nx = 1\n\ny = 2\n```", "Después"]

    def test_normaliza_crlf(self, parser):
        assert parser.split_blocks("a\r\n\r\nb") == ["a", "b"]

    def test_texto_vacio(self, parser):
        assert parser.split_blocks("\n\n  \n") == []


class TestParse:

    def test_parse_md(self, parser, tmp_path):
        f = tmp_path / "guia.md"
        f.write_text("# Guía rápida\n\nPrimer paso.", encoding="utf-8")

        doc = parser.parse(str(f))

        assert doc.title == "Guía rápida"
        assert doc.blocks == ["# Guía rápida", "Primer paso."]
        assert doc.source_path == str(f)

    def test_titulo_cae_al_nombre_de_archivo(self, parser, tmp_path):
        f = tmp_path / "notas.txt"
        f.write_text("Una frase completa que termina en punto.", encoding="utf-8")
        assert parser.parse(str(f)).title == "notas"

    def test_fallback_latin1(self, parser, tmp_path):
        f = tmp_path / "viejo.txt"
        f.write_bytes("Canción de otoño".encode("latin-1"))
        assert parser.parse(str(f)).blocks == ["Canción de otoño"]

    def test_archivo_inexistente(self, parser, tmp_path):
        with pytest.raises(FileNotFoundError):
            parser.parse(str(tmp_path / "no.txt"))

    def test_formato_no_soportado(self, parser, tmp_path):
        f = tmp_path / "libro.epub"
        f.write_text("x")
        with pytest.raises(UnsupportedFormatError):
            parser.parse(str(f))
