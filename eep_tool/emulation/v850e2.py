# emulation/v850e2.py
"""
EEPROM-эмуляция V850E2 (блок 0x1000).

Таблица ссылок растёт вперёд с 0x40, по 16 байт на ссылку:
  +0x00  widx (старшие 16 бит) | ID (младшие 16 бит)
  +0x08  контрольная сумма записи
Слово 0xFFFFFFFF: конец таблицы.

Данные лежат в 8-байтовых ячейках и читаются назад от widx * 8.
Запись, не поместившаяся в блок, продолжается с конца следующего блока.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional

from .blocks import DataflashImage
from .codec import MASK32, read_uint32, to_hex
from .errors import ChecksumError, MissingBlockError, RecordError, WordRangeError
from .layout import REF_END_FLAG, V850E2
from .model import Block, DecodeIssue, RecordEntry

log = logging.getLogger(__name__)

REF_START = 0x40
REF_STRIDE = 0x10
REF_CKS_OFFSET = 0x08
CELL = 8


def get_overlap_data(block_buf: bytes, fix_len: int, start_len: int) -> List[int]:
    """Хвост записи из следующего блока: с последней ячейки назад, пока не наберём fix_len."""
    out: List[int] = []
    while True:
        out.append(read_uint32(block_buf, len(block_buf) - CELL - len(out) * CELL))
        if len(out) + start_len >= fix_len:
            return out


def read_data_entry(
    image: DataflashImage,
    widx: int,
    record_id: int,
    cks_ref: int,
    rwp: int,
    next_block: Optional[Block] = None,
) -> List[int]:
    """
    Прочитать слова записи и сверить контрольную сумму.
    Первое слово несёт длину в байтах (младшие 16 бит), округляем до слов.
    """
    addr = widx * CELL
    fix_len = math.ceil((read_uint32(image.data, addr) & 0xFFFF) / 4)
    data: List[int] = []

    while True:
        if rwp and addr == rwp:
            # Дошли до rwp, а данные ещё есть: они в конце следующего блока.
            if next_block is None:
                raise MissingBlockError(
                    f"Missing next block, invalid data for id {to_hex(record_id)}",
                    record_id, widx * CELL,
                )
            data.extend(get_overlap_data(next_block.data, fix_len, len(data)))
            break
        # Адрес абсолютный, читаем из всего образа, а не из блока.
        data.append(read_uint32(image.data, addr))
        addr = (widx - len(data)) * CELL
        if len(data) >= fix_len:
            break

    cks = MASK32 - record_id
    for word in data:
        cks = (cks - word) & MASK32
    if cks != cks_ref:
        raise ChecksumError(
            f"Invalid checksum for id {to_hex(record_id)}, address {to_hex(widx * CELL)}",
            record_id, widx * CELL,
        )
    return data


class V850E2Strategy:
    layout = V850E2

    def populate(
        self,
        image: DataflashImage,
        blocks: List[Block],
        order: List[int],
        issues: List[DecodeIssue],
    ) -> Dict[int, RecordEntry]:
        records: Dict[int, RecordEntry] = {}
        for pos, index in enumerate(order):
            next_block = blocks[order[pos + 1]] if pos + 1 < len(order) else None
            self._scan_block(image, blocks[index], next_block, records, issues)
        return records

    def _scan_block(
        self,
        image: DataflashImage,
        block: Block,
        next_block: Optional[Block],
        records: Dict[int, RecordEntry],
        issues: List[DecodeIssue],
    ) -> None:
        offset = REF_START
        while offset + REF_STRIDE <= block.size:
            word = read_uint32(block.data, offset)
            if word == REF_END_FLAG:
                break
            widx, record_id = word >> 16, word & 0xFFFF
            ref_addr = block.base + offset
            cks_ref = read_uint32(block.data, offset + REF_CKS_OFFSET)
            try:
                data = read_data_entry(image, widx, record_id, cks_ref, block.write_pointer, next_block)
            except (RecordError, WordRangeError) as e:
                # Одна битая запись не должна ронять всё сканирование.
                log.warning("block %d, ref %s: %s", block.index, to_hex(ref_addr, 6), e)
                issues.append(DecodeIssue(e.kind, str(e), record_id, ref_addr, block.index))
            else:
                start = widx * CELL
                # Идём сверху вниз, поэтому более новое значение просто перезаписывает старое.
                records[record_id] = RecordEntry(
                    id=record_id,
                    word_index=start - block.base,
                    word_index_absolute=start,
                    words=tuple(data),
                    reference_address=ref_addr,
                    block=block.index,
                )

            offset += REF_STRIDE
            if block.write_pointer and block.base + offset >= block.write_pointer:
                break
