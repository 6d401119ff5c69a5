# tests/scheduler/test_dispatcher.py
import asyncio
from unittest.mock import MagicMock

import pytest

from ventana.scheduler.contracts import Renderer, TranslationResult, Translator
from ventana.scheduler.dispatcher import Dispatcher, DispatcherState
from ventana.scheduler.errors import QuotaExhausted, TranslationFailure
from ventana.scheduler.models import EntryState, TranslatableUnit, UnitType
from ventana.scheduler.queue import TranslationQueue
from ventana.scheduler.rate_limiter import RateLimiter


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------

class FakeTranslator(Translator):
    """Traduce anteponiendo el idioma. Registra orden, hora y concurrencia."""

    def __init__(self, clock, fail_on=(), gate: asyncio.Event | None = None):
        self.clock     = clock
        self.fail_on   = set(fail_on)
        self.gate      = gate
        self.calls:    list[str]   = []
        self.times:    list[float] = []
        self.active    = 0
        self.peak      = 0

    async def translate(self, text: str, target_language: str) -> TranslationResult:
        self.calls.append(text)
        self.times.append(self.clock())
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            if text in self.fail_on:
                raise RuntimeError("proveedor caído")
            return TranslationResult(translated_text=f"[{target_language}] {text}", tokens_used=10)
        finally:
            self.active -= 1


async def settle(ticks: int = 20) -> None:
    for _ in range(ticks):
        await asyncio.sleep(0)


def units(n: int) -> list[TranslatableUnit]:
    return [TranslatableUnit(text=f"Segmento número {i}", document_position=i) for i in range(n)]


@pytest.fixture
def renderer():
    return MagicMock(spec=Renderer)


@pytest.fixture
def make_dispatcher(clock, fake_sleep, renderer):
    """Fábrica: cola + limiter con el reloj falso y un FakeTranslator."""

    def _make(rpm=100, tpm=250_000, rpd=1000, translator=None, **kwargs):
        queue   = TranslationQueue(clock=clock)
        limiter = RateLimiter(rpm_limit=rpm, tpm_limit=tpm, rpd_limit=rpd, clock=clock)
        translator = translator or FakeTranslator(clock)
        kwargs.setdefault("inter_batch_delay_ms", 0)
        dispatcher = Dispatcher(
            queue, limiter, translator, "zh-TW",
            renderer = renderer,
            sleep    = fake_sleep,
            **kwargs,
        )
        return dispatcher, queue, translator

    return _make


# ------------------------------------------------------------------
# Orden y límites
# ------------------------------------------------------------------

class TestOrden:

    @pytest.mark.asyncio
    async def test_despacha_en_orden_de_prioridad(self, make_dispatcher):
        dispatcher, queue, translator = make_dispatcher(batch_size=1, max_concurrent_requests=1)
        tardio  = TranslatableUnit(text="párrafo del final", document_position=40)
        titulo  = TranslatableUnit(text="# Capítulo", type=UnitType.TITLE, document_position=30)
        visible = TranslatableUnit(text="lo que se ve", visible=True, document_position=35)
        for u in (tardio, titulo, visible):
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        # visible 100+60+965 > título 80+60+970 > final 960
        assert translator.calls == ["lo que se ve", "# Capítulo", "párrafo del final"]

    @pytest.mark.asyncio
    async def test_rpm_2_cinco_unidades_salen_en_orden(self, make_dispatcher, fake_sleep):
        dispatcher, queue, translator = make_dispatcher(rpm=2)
        batch = units(5)
        for u in batch:
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        assert translator.calls == [u.text for u in batch]
        # Dos esperas de ventana completa: 2 + 2 + 1
        assert fake_sleep.calls == [pytest.approx(60.0), pytest.approx(60.0)]

    @pytest.mark.asyncio
    async def test_nunca_supera_rpm_en_ninguna_ventana(self, make_dispatcher):
        dispatcher, queue, translator = make_dispatcher(rpm=3, max_concurrent_requests=3)
        for u in units(10):
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        assert len(translator.calls) == 10
        for t in translator.times:
            in_window = [x for x in translator.times if t <= x < t + 60]
            assert len(in_window) <= 3

    @pytest.mark.asyncio
    async def test_nunca_supera_tpm_en_ninguna_ventana(self, make_dispatcher):
        dispatcher, queue, translator = make_dispatcher(tpm=30)
        batch = [TranslatableUnit(text=f"{i:02d}" + "x" * 38, document_position=i) for i in range(6)]
        for u in batch:
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        assert len(translator.calls) == 6
        tokens = batch[0].estimated_tokens
        for t in translator.times:
            in_window = [x for x in translator.times if t <= x < t + 60]
            assert len(in_window) * tokens <= 30

    @pytest.mark.asyncio
    async def test_respeta_concurrencia_maxima(self, make_dispatcher, clock):
        gate = asyncio.Event()
        translator = FakeTranslator(clock, gate=gate)
        dispatcher, queue, _ = make_dispatcher(translator=translator, max_concurrent_requests=2)
        for u in units(6):
            queue.enqueue(u)

        dispatcher.start()
        await settle()
        assert translator.active == 2

        gate.set()
        await dispatcher.join()
        assert translator.peak == 2
        assert len(translator.calls) == 6

    @pytest.mark.asyncio
    async def test_delay_entre_lotes(self, make_dispatcher, fake_sleep):
        dispatcher, queue, _ = make_dispatcher(batch_size=2, inter_batch_delay_ms=500)
        for u in units(5):
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        # Tres lotes → dos pausas entre ellos
        assert fake_sleep.calls == [0.5, 0.5]


# ------------------------------------------------------------------
# Deduplicación y errores
# ------------------------------------------------------------------

class TestErrores:

    @pytest.mark.asyncio
    async def test_texto_duplicado_se_traduce_una_vez(self, make_dispatcher):
        dispatcher, queue, translator = make_dispatcher()
        assert queue.enqueue(TranslatableUnit(text="Hello world", document_position=0))
        assert not queue.enqueue(TranslatableUnit(text="Hello world", document_position=9))
        assert queue.size() == 1

        dispatcher.start()
        await dispatcher.join()

        assert translator.calls == ["Hello world"]

    @pytest.mark.asyncio
    async def test_un_fallo_no_afecta_a_las_demas(self, make_dispatcher, clock, renderer):
        batch      = units(3)
        translator = FakeTranslator(clock, fail_on={batch[1].text})
        on_error   = MagicMock()
        dispatcher, queue, _ = make_dispatcher(translator=translator, on_error=on_error)
        for u in batch:
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        assert queue.get(batch[0].id).state == EntryState.COMPLETED
        assert queue.get(batch[1].id).state == EntryState.FAILED
        assert queue.get(batch[2].id).state == EntryState.COMPLETED

        error, unit = on_error.call_args.args
        assert isinstance(error, TranslationFailure)
        assert isinstance(error.cause, RuntimeError)
        assert unit == batch[1]
        renderer.render_error.assert_called_once()
        assert renderer.render.call_count == 2

    @pytest.mark.asyncio
    async def test_unidad_mayor_que_tpm_falla_con_quota_exhausted(self, make_dispatcher):
        on_error = MagicMock()
        dispatcher, queue, translator = make_dispatcher(tpm=50, on_error=on_error)
        grande  = TranslatableUnit(text="x" * 400, document_position=0)
        pequena = TranslatableUnit(text="hola", document_position=1)
        queue.enqueue(grande)
        queue.enqueue(pequena)

        dispatcher.start()
        await dispatcher.join()

        error, unit = on_error.call_args.args
        assert isinstance(error, QuotaExhausted)
        assert unit == grande
        assert translator.calls == ["hola"]
        assert dispatcher.status().failed == 1
        assert dispatcher.status().completed == 1

    @pytest.mark.asyncio
    async def test_listener_roto_no_para_el_bucle(self, make_dispatcher):
        on_progress = MagicMock(side_effect=ValueError("listener roto"))
        dispatcher, queue, translator = make_dispatcher(on_progress=on_progress)
        for u in units(3):
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        assert len(translator.calls) == 3
        assert on_progress.call_count == 3


# ------------------------------------------------------------------
# Eventos y ciclo de vida
# ------------------------------------------------------------------

class TestCicloDeVida:

    @pytest.mark.asyncio
    async def test_on_complete_una_sola_vez(self, make_dispatcher):
        on_complete = MagicMock()
        dispatcher, queue, _ = make_dispatcher(batch_size=2, on_complete=on_complete)
        for u in units(5):
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        on_complete.assert_called_once_with()
        assert dispatcher.state == DispatcherState.IDLE

    @pytest.mark.asyncio
    async def test_progreso_llega_al_100(self, make_dispatcher):
        progress = []
        dispatcher, queue, _ = make_dispatcher(on_progress=progress.append)
        for u in units(4):
            queue.enqueue(u)

        dispatcher.start()
        await dispatcher.join()

        assert [p.current for p in progress] == [1, 2, 3, 4]
        assert progress[-1].total == 4
        assert progress[-1].percentage == 100

    @pytest.mark.asyncio
    async def test_start_con_cola_vacia_no_hace_nada(self, make_dispatcher):
        on_complete = MagicMock()
        dispatcher, _, _ = make_dispatcher(on_complete=on_complete)

        assert dispatcher.start() is None
        await dispatcher.join()

        on_complete.assert_not_called()
        assert dispatcher.state == DispatcherState.IDLE

    @pytest.mark.asyncio
    async def test_start_dos_veces_devuelve_la_misma_tarea(self, make_dispatcher):
        dispatcher, queue, _ = make_dispatcher()
        for u in units(2):
            queue.enqueue(u)

        first  = dispatcher.start()
        second = dispatcher.start()
        await dispatcher.join()

        assert first is second

    @pytest.mark.asyncio
    async def test_pausa_y_reanuda(self, make_dispatcher, clock):
        gate = asyncio.Event()
        translator = FakeTranslator(clock, gate=gate)
        dispatcher, queue, _ = make_dispatcher(
            translator=translator, batch_size=4, max_concurrent_requests=1,
        )
        for u in units(4):
            queue.enqueue(u)

        dispatcher.start()
        await settle()
        assert dispatcher.pause() is True
        assert dispatcher.pause() is False

        gate.set()
        await settle()
        # Lo que estaba en vuelo termina; lo demás espera
        assert len(translator.calls) == 1
        assert dispatcher.status().paused
        assert dispatcher.status().pending == 3

        assert dispatcher.resume() is True
        await dispatcher.join()
        assert len(translator.calls) == 4

    @pytest.mark.asyncio
    async def test_pausa_en_el_ultimo_lote_no_bloquea_la_siguiente_ejecucion(self, make_dispatcher, clock):
        gate = asyncio.Event()
        translator = FakeTranslator(clock, gate=gate)
        dispatcher, queue, _ = make_dispatcher(translator=translator)
        queue.enqueue(TranslatableUnit(text="uno"))

        dispatcher.start()
        await settle()
        assert dispatcher.pause() is True
        gate.set()
        await dispatcher.join()

        assert dispatcher.state == DispatcherState.IDLE
        assert dispatcher.is_paused is False
        assert dispatcher.resume() is False
        assert dispatcher.state == DispatcherState.IDLE

        queue.enqueue(TranslatableUnit(text="dos"))
        assert dispatcher.start() is not None
        await dispatcher.join()
        assert translator.calls == ["uno", "dos"]

    @pytest.mark.asyncio
    async def test_clear_descarta_resultados_tardios(self, make_dispatcher, clock, renderer):
        gate        = asyncio.Event()
        translator  = FakeTranslator(clock, gate=gate)
        on_complete = MagicMock()
        dispatcher, queue, _ = make_dispatcher(translator=translator, on_complete=on_complete)
        for u in units(3):
            queue.enqueue(u)

        dispatcher.start()
        await settle()
        assert dispatcher.status().in_flight == 3

        dispatcher.clear()
        gate.set()
        await settle()

        renderer.render.assert_not_called()
        on_complete.assert_not_called()
        assert queue.size() == 0
        assert dispatcher.state == DispatcherState.IDLE

    @pytest.mark.asyncio
    async def test_tras_clear_se_puede_volver_a_empezar(self, make_dispatcher):
        dispatcher, queue, translator = make_dispatcher()
        queue.enqueue(TranslatableUnit(text="uno"))
        dispatcher.clear()

        queue.enqueue(TranslatableUnit(text="dos"))
        dispatcher.start()
        await dispatcher.join()

        assert translator.calls == ["dos"]

    def test_parametros_invalidos(self, clock):
        queue   = TranslationQueue(clock=clock)
        limiter = RateLimiter(clock=clock)
        with pytest.raises(ValueError):
            Dispatcher(queue, limiter, MagicMock(), "es", batch_size=0)
