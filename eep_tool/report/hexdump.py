# report/hexdump.py
from __future__ import annotations
from pathlib import Path
from typing import Iterable, Mapping

from rich.table import Table

from ..emulation.codec import to_hex
from ..emulation.model import DecodeResult, RecordEntry

BYTES_PER_ROW = 16
ASCII_GAP = " " * 7


def ascii_column(chunk: bytes) -> str:
    return "".join(chr(b) if 32 <= b <= 126 else "." for b in chunk)


def row_str(chunk: bytes) -> str:
    """Строка дампа: 16 HEX-колонок + ASCII. Неполная строка добивается пробелами."""
    if len(chunk) > BYTES_PER_ROW:
        raise ValueError(f"Given buffer is bigger than {to_hex(BYTES_PER_ROW)} byte, cannot log")
    hex_part = "".join(
        (f"{chunk[i]:02X}" if i < len(chunk) else "  ") + " " for i in range(BYTES_PER_ROW)
    )
    return f"{hex_part}{ASCII_GAP}{ascii_column(chunk).ljust(BYTES_PER_ROW)}\n"


def record_to_str(entry: RecordEntry) -> str:
    out = [f"################## ID {to_hex(entry.id, 3)} ###################\n"]
    data = entry.data
    for i in range(0, len(data), BYTES_PER_ROW):
        out.append(row_str(data[i:i + BYTES_PER_ROW]))
    out.append("###############################################\n\n")
    return "".join(out)


def records_to_str(records: Mapping[int, RecordEntry]) -> str:
    return "".join(record_to_str(records[k]) for k in sorted(records))


def export_records(records: Mapping[int, RecordEntry], out_path: Path) -> dict:
    """Сохранить текстовый отчёт по всем ID. Возвращает сводку для лога."""
    out_path = Path(out_path)
    text = records_to_str(records)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    return {"records": len(records), "bytes": len(text.encode("utf-8")), "out": str(out_path)}


def records_table(result: DecodeResult, preview: int = 8) -> Table:
    table = Table(title=f"EEPROM {result.family}: {len(result.records)} ID")
    for col in ("ID", "Блок", "Ссылка", "Данные @", "Слов", "Данные"):
        table.add_column(col)
    for entry in result.records.values():
        head = entry.data[:preview].hex(" ").upper()
        if entry.length_words * 4 > preview:
            head += " …"
        table.add_row(
            to_hex(entry.id, 4),
            str(entry.block),
            to_hex(entry.reference_address, 6),
            to_hex(entry.word_index_absolute, 6),
            str(entry.length_words),
            head,
        )
    return table


def blocks_table(blocks: Iterable, order: list[int]) -> Table:
    table = Table(title="Блоки dataflash")
    for col in ("#", "Валиден", "Стираний", "rwp", "Порядок"):
        table.add_column(col)
    for b in blocks:
        pos = order.index(b.index) if b.index in order else None
        table.add_row(
            str(b.index),
            "[green]да[/]" if b.is_valid else "[dim]нет[/]",
            str(b.erase_count) if b.is_valid else "-",
            to_hex(b.write_pointer, 6) if b.write_pointer else "-",
            str(pos) if pos is not None else "-",
        )
    return table
