# emulation/layout.py
from dataclasses import dataclass

ACTIVE_FLAG = 0x55555555
REF_END_FLAG = 0xFFFFFFFF


@dataclass(frozen=True)
class FamilyLayout:
    name: str
    block_size: int
    guard_offsets: tuple          # слова, которые должны быть 55 55 55 55
    erase_count_offset: int
    rwp_offset: int
    rwp_scale: int = 1            # V850E2 хранит rwp / 2
    header_checksums: bool = False  # RH850: сумма байтов полей счётчика и rwp == 0xFF


# V850E2: блок 4 КБ, таблица ссылок растёт вперёд с 0x40, данные назад с конца блока.
V850E2 = FamilyLayout(
    "v850e2",
    block_size=0x1000,
    guard_offsets=(0x10, 0x18, 0x20),
    erase_count_offset=0x28,
    rwp_offset=0x30,
    rwp_scale=2,
)

# RH850: блок 2 КБ, длины записей задаёт внешняя таблица в code flash.
RH850 = FamilyLayout(
    "rh850",
    block_size=0x800,
    guard_offsets=(0x04, 0x08, 0x0C),
    erase_count_offset=0x10,
    rwp_offset=0x14,
    header_checksums=True,
)

FAMILIES = {f.name: f for f in (V850E2, RH850)}
