# emulation/rh850.py
"""
EEPROM-эмуляция RH850 (блок 0x800).

Длины записей в самом блоке не хранятся: их задаёт таблица ID->длина
(IDL table) в code flash. Адрес таблицы берётся из дескриптора EEL:

    const r_eel_descriptor_t sampleApp_eelConfig_enu =
    {
       EEL_CONFIG_VBLK_SIZE,                     < размер виртуального блока
       EEL_CONFIG_VBLK_CNT_REFRESH_THRESHOLD,    < мин. число подготовленных блоков
       &(IDLTab_astr[0]),                        < указатель на ID-L таблицу в ROM
       &(IDXTab_au16[0]),                        < указатель на ID-X таблицу в RAM
       (sizeof(IDLTab_astr) / sizeof(r_eel_ds_cfg_t)),
       EEL_CONFIG_ERASE_SUSPEND_THRESHOLD
    };

Дескрипторы пишутся вперёд от заголовка блока, каждый защищён тремя
словами 55 55 55 55 перед ним; данные пишутся назад с конца блока.
Блок читаем назад от rwp, поэтому первое найденное значение ID самое новое.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .blocks import DataflashImage
from .codec import WORD, read_uint32, to_hex
from .errors import GuardError, TableError, WordRangeError
from .layout import ACTIVE_FLAG, RH850
from .model import Block, DecodeIssue, RecordEntry

log = logging.getLogger(__name__)

TABLE_HEADER_SIZE = 0x10
DESC_STRIDE = 0x10
HEADER_END = 0x20        # дескрипторы ниже этого адреса не ищем
FIRST_RWP = 0x28         # первый возможный rwp в пустом блоке


@dataclass(frozen=True)
class TableHeader:
    block_size: int
    prep_blocks_min: int
    pointer_rom: int
    pointer_ram: int
    entries: int
    erase_suspend: int

    @classmethod
    def parse(cls, code_flash: bytes, address: int) -> "TableHeader":
        """Разобрать дескриптор EEL по адресу address. Невалидный адрес: исключение."""
        if address < 0 or len(code_flash) < address + TABLE_HEADER_SIZE:
            raise TableError(
                f"Invalid table header address {to_hex(address)}, "
                f"the codeflash is {to_hex(len(code_flash))} bytes"
            )
        w0 = read_uint32(code_flash, address)
        w3 = read_uint32(code_flash, address + 0x0C)
        return cls(
            block_size=w0 & 0xFFFF,
            prep_blocks_min=w0 >> 16,
            pointer_rom=read_uint32(code_flash, address + 0x04),
            pointer_ram=read_uint32(code_flash, address + 0x08),
            entries=w3 & 0xFFFF,
            erase_suspend=w3 >> 16,
        )


def load_id_table(code_flash: bytes, header: TableHeader, block_size: int = RH850.block_size) -> Dict[int, int]:
    """ID -> длина записи в словах. Запись длиннее блока: ошибка конфигурации."""
    start = header.pointer_rom
    end = start + header.entries * WORD
    if end > len(code_flash):
        raise TableError(
            f"ID table {to_hex(start)}..{to_hex(end)} is outside the codeflash "
            f"of {to_hex(len(code_flash))} bytes"
        )

    table: Dict[int, int] = {}
    for addr in range(start, end, WORD):
        word = read_uint32(code_flash, addr)
        length, record_id = word >> 16, word & 0xFFFF
        # В RH850 нет перекрытия блоков, запись обязана помещаться в один блок.
        if length > block_size:
            raise TableError(f"Invalid rh850 table (id -> {to_hex(record_id, 4)}, length -> {to_hex(length, 4)})")
        table[record_id] = math.ceil(length / WORD)
    return table


def read_descriptor(block: Block, ref: int) -> Tuple[int, int]:
    """Проверить три защитных слова перед ссылкой и вернуть (widx, ID)."""
    if ref - 0x0C < 0 or ref + WORD > block.size:
        raise WordRangeError(f"Descriptor {to_hex(ref)} is outside block {block.index}")
    guards = [read_uint32(block.data, ref - off) for off in (0x04, 0x08, 0x0C)]
    word = read_uint32(block.data, ref)
    widx, record_id = word >> 16, word & 0xFFFF
    if any(g != ACTIVE_FLAG for g in guards):
        raise GuardError(f"Guard mismatch at {to_hex(block.base + ref, 6)}", record_id, block.base + ref)
    if widx >= block.size:
        raise GuardError(
            f"Word index {to_hex(widx, 4)} out of block for id {to_hex(record_id)}",
            record_id, block.base + ref,
        )
    return widx, record_id


class RH850Strategy:
    layout = RH850

    def __init__(self, code_flash: bytes, table_header_addr: int):
        self.header = TableHeader.parse(code_flash, table_header_addr)
        self.table = load_id_table(code_flash, self.header, self.layout.block_size)
        log.debug("rh850 table: %d entries at %s", len(self.table), to_hex(self.header.pointer_rom, 8))

    def find_active_rwp(self, block: Block) -> int:
        """
        rwp блока, который ещё пишется (в следующем заголовке его нет).
        Идём по дескрипторам вперёд; дескриптор засчитывается, если его данные
        начинаются ровно там, где ожидаем следующий указатель данных (dwp).
        Возвращает абсолютный адрес; для пустого блока rwp стоит перед первым
        слотом, и обход назад ничего не читает.
        """
        best = FIRST_RWP - DESC_STRIDE
        rwp = FIRST_RWP
        dwp = block.size - 8
        while rwp < dwp:
            try:
                widx, record_id = read_descriptor(block, rwp - WORD)
            except (GuardError, WordRangeError):
                rwp += DESC_STRIDE
                continue
            length = self.table.get(record_id)
            # Данные должны лежать выше самого дескриптора.
            if length is not None and widx == dwp and widx - (length - 1) * WORD > rwp - WORD:
                best = rwp
                dwp -= length * WORD
            rwp += DESC_STRIDE
        return block.base + best

    def populate(
        self,
        image: DataflashImage,
        blocks: List[Block],
        order: List[int],
        issues: List[DecodeIssue],
    ) -> Dict[int, RecordEntry]:
        found: Dict[int, Optional[RecordEntry]] = {record_id: None for record_id in self.table}
        for index in order:
            self._scan_block(blocks[index], found, issues)
        return {k: v for k, v in sorted(found.items()) if v is not None}

    def _scan_block(self, block: Block, found: Dict[int, Optional[RecordEntry]], issues: List[DecodeIssue]) -> None:
        rwp = block.write_pointer
        if not rwp:
            rwp = self.find_active_rwp(block)
            log.info("block %d: active rwp recovered at %s", block.index, to_hex(rwp, 6))
            if rwp - block.base < FIRST_RWP:
                log.debug("block %d: no descriptors written yet", block.index)
                return

        for ref in range(rwp - block.base - WORD, HEADER_END, -DESC_STRIDE):
            try:
                widx, record_id = read_descriptor(block, ref)
            except (GuardError, WordRangeError) as e:
                record_id = getattr(e, "record_id", None)
                log.debug(
                    "block %d: id %s at %s: %s", block.index,
                    to_hex(record_id) if record_id is not None else "?", to_hex(block.base + ref, 6), e,
                )
                issues.append(DecodeIssue(e.kind, str(e), record_id, block.base + ref, block.index))
                continue

            # ID, которого нет в таблице, молча пропускаем.
            if record_id not in found:
                continue
            # Идём от rwp назад: первое попадание и есть самое новое, старые дубли игнорируем.
            if found[record_id] is not None:
                continue

            try:
                words = [read_uint32(block.data, widx - j * WORD) for j in range(self.table[record_id])]
            except WordRangeError as e:
                log.warning("block %d: id %s at %s: %s", block.index, to_hex(record_id), to_hex(block.base + ref, 6), e)
                issues.append(DecodeIssue(e.kind, str(e), record_id, block.base + ref, block.index))
                continue

            found[record_id] = RecordEntry(
                id=record_id,
                word_index=widx,
                word_index_absolute=block.base + widx,
                words=tuple(words),
                reference_address=block.base + ref,
                block=block.index,
            )
