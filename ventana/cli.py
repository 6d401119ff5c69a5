# ventana/cli.py
import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from ventana.config_loader import load_config
from ventana.factory import MODES, build_orchestrator
from ventana.processor.extractor import DocumentExtractor
from ventana.processor.txt_parser import SUPPORTED_EXTENSIONS
from ventana.router.router import AllModelsExhaustedError
from ventana.scheduler.config import SchedulerConfig
from ventana.scheduler.errors import SchedulerError, TranslationFailure
from ventana.scheduler.models import Progress, TranslatableUnit
from ventana.scheduler.ranker import PriorityRanker


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

_PREVIEW_CHARS = 60


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="ventana")
def main():
    """
    Ventana: traducción de documentos por prioridad de lectura.

    Traduce primero lo que el lector ve, respetando los límites
    por minuto y por día del proveedor.
    """


# ------------------------------------------------------------------
# ventana translate
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--doc", "-d",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Documento a traducir (.txt, .md)",
)
@click.option(
    "--to", "target_lang",
    required = True,
    metavar  = "LANG",
    help     = "Idioma de destino (ej: zh-TW, es, en)",
)
@click.option(
    "--from", "source_lang",
    default      = "auto",
    show_default = True,
    metavar      = "LANG",
    help         = "Idioma de origen. Usa 'auto' si no lo sabes.",
)
@click.option(
    "--mode",
    default      = "full",
    show_default = True,
    type         = click.Choice(list(MODES), case_sensitive=False),
    help         = "full: todo el documento por prioridad; viewport: simula una lectura con scroll",
)
@click.option(
    "--viewport-height",
    default      = 900,
    show_default = True,
    type         = click.IntRange(min=1),
    help         = "Alto del viewport en px (decide qué unidades son visibles)",
)
@click.option(
    "--output", "-o",
    default = None,
    type    = click.Path(dir_okay=False),
    help    = "Ruta del documento traducido (por defecto ~/.ventana/output/)",
)
@click.option("--config", "config_path", default=None, type=click.Path(), help="Ruta alternativa al config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Logging en nivel DEBUG")
def translate(
    doc:             str,
    target_lang:     str,
    source_lang:     str,
    mode:            str,
    viewport_height: int,
    output:          str | None,
    config_path:     str | None,
    verbose:         bool,
):
    """Traduce un documento unidad por unidad, lo visible primero."""
    _setup_logging(verbose)

    # ── Validaciones de entrada ───────────────────────────────────
    _validate_file(doc)
    _validate_lang(target_lang, "--to")
    if source_lang.lower() != "auto":
        _validate_lang(source_lang, "--from")
        if source_lang.lower() == target_lang.lower():
            _abort("El idioma de origen y destino no pueden ser el mismo.")

    output_dir, output_filename = _resolve_output(doc, target_lang, output)

    # ── Ensamblar pipeline ────────────────────────────────────────
    try:
        orchestrator = build_orchestrator(
            document_path      = doc,
            config_path        = config_path,
            output_dir         = output_dir,
            mode               = mode.lower(),
            viewport_height_px = viewport_height,
            target_language    = target_lang,
            source_language    = source_lang,
        )
    except (FileNotFoundError, ValueError) as e:
        _abort(str(e))
    except RuntimeError as e:
        _error(str(e))
        sys.exit(2)

    exhausted = []

    def on_progress(progress: Progress) -> None:
        click.echo(f"[ventana] {progress.current}/{progress.total} ({progress.percentage}%)")

    def on_error(error: SchedulerError, unit: TranslatableUnit) -> None:
        if isinstance(error, TranslationFailure) and isinstance(error.cause, AllModelsExhaustedError):
            exhausted.append(unit.id)
        click.echo(click.style(f"[ventana] ⚠ {unit.id}: {error}", fg="yellow"))

    orchestrator.dispatcher.on_progress = on_progress
    orchestrator.dispatcher.on_error    = on_error

    # ── Ejecutar ──────────────────────────────────────────────────
    click.echo(f"[ventana] Traduciendo {Path(doc).name} → {target_lang} (modo {mode.lower()})")
    try:
        if mode.lower() == "viewport":
            result = asyncio.run(_read_and_build(orchestrator, viewport_height, output_filename))
        else:
            result = asyncio.run(orchestrator.translate_document(output_filename))

    except KeyboardInterrupt:
        click.echo("\n[ventana] Proceso interrumpido.")
        sys.exit(0)

    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)

    # ── Resumen final ─────────────────────────────────────────────
    _print_summary(result)

    if exhausted:
        _error(
            f"Sin modelos disponibles para {len(exhausted)} unidades. "
            f"Reejecuta el comando cuando tengas quota disponible."
        )
        sys.exit(2)


# ------------------------------------------------------------------
# ventana plan
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--doc", "-d",
    required = True,
    type     = click.Path(exists=False),
    help     = "Documento a analizar (.txt, .md)",
)
@click.option(
    "--viewport-height",
    default      = 900,
    show_default = True,
    type         = click.IntRange(min=1),
    help         = "Alto del viewport en px",
)
@click.option("--config", "config_path", default=None, type=click.Path(), help="Ruta alternativa al config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Logging en nivel DEBUG")
def plan(doc: str, viewport_height: int, config_path: str | None, verbose: bool):
    """Muestra el orden en que se traducirían las unidades, sin traducir nada."""
    _setup_logging(verbose)
    _validate_file(doc)

    try:
        scheduler = load_config(config_path).scheduler
    except FileNotFoundError:
        click.echo("[ventana] Sin config, usando pesos por defecto.")
        scheduler = SchedulerConfig()
    except ValueError as e:
        _abort(str(e))

    extractor = DocumentExtractor.from_file(doc, viewport_height_px=viewport_height)
    ranker    = PriorityRanker(scheduler.priority_weights)
    units     = ranker.prioritize(extractor.units)

    click.echo(f"[ventana] {len(units)} unidades en orden de despacho:")
    for rank, unit in enumerate(units, start=1):
        click.echo(
            f"[ventana] {rank:>4}. p={ranker.rank(unit):<4} {unit.type.value:<9} "
            f"{unit.estimated_tokens:>5} tok  {_preview(unit.text)}"
        )


# ------------------------------------------------------------------
# Helpers de ejecución
# ------------------------------------------------------------------

async def _read_and_build(orchestrator, viewport_height: int, output_filename: str):
    result = await orchestrator.read_through(viewport_height)
    result.output_path = orchestrator.build_output(output_filename)
    return result


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level  = logging.DEBUG if verbose else logging.WARNING,
        format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_output(doc: str, target_lang: str, output: str | None) -> tuple[Path | None, str]:
    if output:
        path = Path(output)
        return path.parent, path.name
    source = Path(doc)
    return None, f"{source.stem}.{target_lang}{source.suffix}"


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> None:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in SUPPORTED_EXTENSIONS:
        supported = ", ".join(sorted(SUPPORTED_EXTENSIONS))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )


def _validate_lang(code: str, option: str) -> None:
    """Valida que el código de idioma sea razonable."""
    code = code.strip()

    if not code:
        _abort(f"{option} no puede estar vacío.")

    if not code.replace("-", "").isalpha():
        _abort(
            f"{option} contiene caracteres inválidos: '{code}'\n"
            f"Ejemplos válidos: en, es, ja, zh-TW, pt-BR"
        )

    if len(code) > 10:
        _abort(f"{option}: código de idioma demasiado largo: '{code}'")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_summary(result) -> None:
    """Imprime el resumen final del pipeline."""
    click.echo("")
    click.echo("─" * 50)
    if result.pending > 0:
        click.echo("[ventana] ⚠ Traducción incompleta")
    else:
        click.echo("[ventana] ✓ Traducción completada")
    click.echo(f"[ventana]   Total unidades : {result.total}")
    click.echo(f"[ventana]   Traducidas     : {result.translated}")

    if result.failed:
        click.echo(
            click.style(
                f"[ventana]   Fallidas       : {result.failed} (marcadas para revisión)",
                fg="yellow",
            )
        )

    if result.pending > 0:
        click.echo(f"[ventana]   Pendientes     : {result.pending}")

    if result.output_path:
        click.echo(f"[ventana]   Output         : {result.output_path}")
    click.echo("─" * 50)


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _PREVIEW_CHARS:
        return flat
    return flat[: _PREVIEW_CHARS - 1] + "…"


def _abort(message: str) -> None:
    """Error de validación: culpa del usuario."""
    click.echo(click.style(f"[ventana] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema: no es culpa del usuario."""
    click.echo(click.style(f"[ventana] {message}", fg="red"), err=True)
