from __future__ import annotations
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from .config import LOG_FILE
from .emulation.errors import EmulationError
from .emulation.blocks import DataflashImage, build_catalog, order_by_erase_count
from .emulation.io import decode_file, load_image
from .emulation.layout import FAMILIES
from .emulation.model import DecodeResult
from .emulation.rh850 import RH850Strategy
from .logs import log_event, setup_logging
from .report.hexdump import blocks_table, export_records, records_table, records_to_str

app = typer.Typer(add_completion=False, help="EEPROM-эмуляция NEC/Renesas: разбор дампа dataflash (V850E2, RH850).")


def _parse_addr(value: str) -> int:
    try:
        return int(value, 0)
    except ValueError:
        raise typer.BadParameter(f"Адрес должен быть числом (напр. 0x1F000), получено: {value}")


def _fail(e: Exception):
    print(f"[red]Ошибка:[/] {e}")
    log_event("error", {"error": str(e), "type": type(e).__name__})
    raise typer.Exit(code=2)


def _report(result: DecodeResult, out: Path | None, dump: bool):
    print(records_table(result))
    if dump:
        print(escape(records_to_str(result.records)), end="")
    if result.issues:
        print(f"[yellow]Пропущено записей/слотов с ошибками: {len(result.issues)}[/]")
    log_event("decode", result.summary())
    if out is not None:
        info = export_records(result.records, out)
        log_event("export", info)
        print(f"[green]Готово:[/] {info['records']} ID -> {info['out']}")
    print(f"\n[dim]Логи записаны в: {LOG_FILE}[/]")


@app.command()
def v850e2(
    image: Path = typer.Argument(..., help="Дамп dataflash V850E2"),
    out: Path = typer.Option(None, help="Сохранить отчёт по ID в файл"),
    dump: bool = typer.Option(False, help="Вывести HEX/ASCII дамп каждой записи"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Подробный лог"),
):
    """Восстановить записи EEPROM из дампа V850E2 (блок 0x1000)."""
    setup_logging(verbose)
    try:
        result = decode_file("v850e2", image)
    except (EmulationError, FileNotFoundError) as e:
        _fail(e)
    _report(result, out, dump)


@app.command()
def rh850(
    image: Path = typer.Argument(..., help="Дамп dataflash RH850"),
    code_flash: Path = typer.Argument(..., help="Образ code flash с таблицей ID"),
    table_addr: str = typer.Argument(..., help="Адрес дескриптора EEL в code flash (hex)"),
    out: Path = typer.Option(None, help="Сохранить отчёт по ID в файл"),
    dump: bool = typer.Option(False, help="Вывести HEX/ASCII дамп каждой записи"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Подробный лог"),
):
    """Восстановить записи EEPROM из дампа RH850 (блок 0x800) по таблице из code flash."""
    setup_logging(verbose)
    addr = _parse_addr(table_addr)
    try:
        result = decode_file("rh850", image, code_flash, addr)
    except (EmulationError, FileNotFoundError) as e:
        _fail(e)
    _report(result, out, dump)


@app.command()
def blocks(
    image: Path = typer.Argument(..., help="Дамп dataflash"),
    family: str = typer.Option("v850e2", help="v850e2 или rh850"),
    code_flash: Path = typer.Option(None, help="RH850: образ code flash (для поиска активного rwp)"),
    table_addr: str = typer.Option(None, help="RH850: адрес дескриптора EEL (hex)"),
):
    """Показать каталог блоков и порядок стирания."""
    setup_logging(False)
    layout = FAMILIES.get(family)
    if layout is None:
        raise typer.BadParameter(f"Неизвестное семейство: {family}")

    strategy = None
    try:
        catalog = build_catalog(DataflashImage(load_image(image), layout.block_size), layout)
        # rwp активного блока RH850 ищем только при известной таблице ID.
        if family == "rh850" and code_flash is not None and table_addr is not None:
            strategy = RH850Strategy(load_image(code_flash), _parse_addr(table_addr))
    except (EmulationError, FileNotFoundError) as e:
        _fail(e)
    order = order_by_erase_count(catalog)

    print(blocks_table(catalog, order))
    if order and strategy is not None and not catalog[order[-1]].write_pointer:
        rwp = strategy.find_active_rwp(catalog[order[-1]])
        print(f"Активный блок {order[-1]}: rwp (восстановлен) = [cyan]0x{rwp:06X}[/]")
    log_event("blocks", {"image": str(image), "family": family, "order": order,
                         "blocks": [b.to_dict() for b in catalog]})


if __name__ == "__main__":
    app()
