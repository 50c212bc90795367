# emulation/io.py
from __future__ import annotations
from pathlib import Path
from typing import Dict, List, Protocol

from .blocks import DataflashImage, build_catalog, order_by_erase_count
from .layout import FamilyLayout
from .model import Block, DecodeIssue, DecodeResult, RecordEntry
from .rh850 import RH850Strategy
from .v850e2 import V850E2Strategy


# ---- Стратегия восстановления записей (своя на каждое семейство) ----
class Strategy(Protocol):
    layout: FamilyLayout

    def populate(
        self,
        image: DataflashImage,
        blocks: List[Block],
        order: List[int],
        issues: List[DecodeIssue],
    ) -> Dict[int, RecordEntry]: ...


class EepromDecoder:
    """
    Каталог блоков и порядок стирания строятся один раз в конструкторе,
    decode() каждый раз собирает результат заново.
    """
    def __init__(self, dataflash: bytes, strategy: Strategy):
        self.strategy = strategy
        self.image = DataflashImage(dataflash, strategy.layout.block_size)
        self._catalog_issues: List[DecodeIssue] = []
        self.blocks = build_catalog(self.image, strategy.layout, self._catalog_issues)
        self.order = order_by_erase_count(self.blocks)

    @property
    def family(self) -> str:
        return self.strategy.layout.name

    def decode(self) -> DecodeResult:
        issues = list(self._catalog_issues)
        records = self.strategy.populate(self.image, self.blocks, self.order, issues)
        return DecodeResult(
            family=self.family,
            blocks=self.blocks,
            order=list(self.order),
            records=dict(sorted(records.items())),
            issues=issues,
        )


def decode_v850e2(dataflash: bytes) -> DecodeResult:
    return EepromDecoder(dataflash, V850E2Strategy()).decode()


def decode_rh850(dataflash: bytes, code_flash: bytes, table_header_addr: int) -> DecodeResult:
    return EepromDecoder(dataflash, RH850Strategy(code_flash, table_header_addr)).decode()


# ---- Высокоуровневые операции над файлами ----
def load_image(path: Path) -> bytes:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Файл не найден: {path}")
    return path.read_bytes()


def decode_file(family: str, image_path: Path, code_flash_path: Path | None = None,
                table_header_addr: int | None = None) -> DecodeResult:
    dataflash = load_image(image_path)
    if family == "v850e2":
        return decode_v850e2(dataflash)
    if family == "rh850":
        if code_flash_path is None or table_header_addr is None:
            raise ValueError("Для RH850 нужны образ code flash и адрес заголовка таблицы.")
        return decode_rh850(dataflash, load_image(code_flash_path), table_header_addr)
    raise ValueError(f"Неизвестное семейство: {family}")
