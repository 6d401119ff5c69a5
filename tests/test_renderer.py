# tests/test_renderer.py
import pytest

from ventana.renderer import DocumentRenderer
from ventana.scheduler.models import TranslatableUnit


@pytest.fixture
def renderer(tmp_path):
    return DocumentRenderer(output_dir=tmp_path)


def unit(text: str, top: float, bottom: float) -> TranslatableUnit:
    return TranslatableUnit(text=text, top_y=top, bottom_y=bottom)


class TestRenderer:

    def test_frontier_es_el_fondo_mas_bajo_traducido(self, renderer):
        assert renderer.lowest_translated_bottom_y() is None

        renderer.render(unit("a", 0, 40), "A")
        renderer.render(unit("c", 200, 260), "C")
        renderer.render(unit("b", 100, 140), "B")

        assert renderer.lowest_translated_bottom_y() == 260

    def test_los_errores_no_mueven_el_frontier(self, renderer):
        renderer.render_error(unit("a", 0, 40), "boom")
        assert renderer.lowest_translated_bottom_y() is None

    def test_traducir_limpia_el_error_previo(self, renderer):
        u = unit("a", 0, 40)
        renderer.render_error(u, "boom")
        renderer.render(u, "A")

        assert renderer.error_for(u) is None
        assert renderer.translation_for(u) == "A"

    def test_clear(self, renderer):
        renderer.render(unit("a", 0, 40), "A")
        renderer.clear()

        assert renderer.translated_count == 0
        assert renderer.lowest_translated_bottom_y() is None


class TestBuild:

    def test_escribe_en_orden_de_lectura(self, renderer, tmp_path):
        traducida = unit("Hello", 0, 20)
        fallida   = unit("World", 30, 50)
        pendiente = unit("Again", 60, 80)
        renderer.render(traducida, "你好")
        renderer.render_error(fallida, "timeout")

        path = renderer.build([traducida, fallida, pendiente], "out.md")

        assert path == tmp_path / "out.md"
        assert path.read_text(encoding="utf-8") == (
            "你好\n\n[⚠ PENDIENTE DE REVISIÓN]\nWorld\n\nAgain\n"
        )

    def test_crea_el_directorio(self, tmp_path):
        renderer = DocumentRenderer(output_dir=tmp_path / "nuevo" / "dir")
        path = renderer.build([unit("x", 0, 10)], "x.txt")
        assert path.exists()
