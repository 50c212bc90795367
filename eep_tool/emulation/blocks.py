# emulation/blocks.py
"""Каталог блоков dataflash и порядок их стирания.

Каталог строится один раз по всему образу: невалидные блоки остаются в
списке (индексы стабильны), но дальше используются только валидные в
порядке от самого старого к самому новому.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .codec import checksum8, read_uint32, to_hex
from .errors import GeometryError
from .layout import ACTIVE_FLAG, FamilyLayout
from .model import Block, DecodeIssue

log = logging.getLogger(__name__)


class DataflashImage:
    """Неизменяемый образ dataflash, разбитый на окна block_size."""

    def __init__(self, data: bytes, block_size: int):
        self.data = bytes(data)
        self.block_size = block_size
        if not self.data or len(self.data) % block_size != 0:
            raise GeometryError(
                f"Invalid dataflash buffer size: must be multiple of given block size "
                f"{to_hex(block_size)}, received {to_hex(len(self.data))}"
            )
        self.n_blocks = len(self.data) // block_size

    def __len__(self) -> int:
        return len(self.data)

    def window(self, index: int) -> bytes:
        start = index * self.block_size
        return self.data[start:start + self.block_size]


def _field(buf: bytes, offset: int) -> int:
    # 3 байта значения; в RH850 четвёртый байт поля: контрольный
    return read_uint32(buf[offset:offset + 3])


def is_valid_block(buf: bytes, layout: FamilyLayout) -> bool:
    if len(buf) != layout.block_size:
        return False
    if any(read_uint32(buf, off) != ACTIVE_FLAG for off in layout.guard_offsets):
        return False
    if layout.header_checksums:
        # Флаги prepare/active могут читаться как 55 55 55 55 и после стирания,
        # поэтому суммы счётчика и rwp обязаны сходиться.
        ec, rwp = layout.erase_count_offset, layout.rwp_offset
        return checksum8(buf, ec, ec + 3) == 0xFF and checksum8(buf, rwp, rwp + 3) == 0xFF
    return True


def build_catalog(
    image: DataflashImage,
    layout: FamilyLayout,
    issues: Optional[List[DecodeIssue]] = None,
) -> List[Block]:
    blocks: List[Block] = []
    rwps: List[tuple] = []  # (блок-источник, адрес)

    for i in range(image.n_blocks):
        buf = image.window(i)
        valid = is_valid_block(buf, layout)
        blocks.append(Block(
            index=i,
            size=layout.block_size,
            is_valid=valid,
            erase_count=_field(buf, layout.erase_count_offset) if valid else 0,
            data=buf,
        ))
        if valid:
            rwps.append((i, _field(buf, layout.rwp_offset) * layout.rwp_scale))

    # rwp блока пишется в заголовок СЛЕДУЮЩЕГО блока;
    # у последнего активного блока rwp нигде не записан.
    for src, addr in rwps:
        if not addr:
            continue
        target = addr // layout.block_size
        if target >= len(blocks):
            msg = f"rwp {to_hex(addr, 6)} from block {src} points outside the image"
            log.warning(msg)
            if issues is not None:
                issues.append(DecodeIssue("rwp", msg, address=addr, block=src))
            continue
        blocks[target].write_pointer = addr

    log.debug("catalog %s: %d blocks, %d valid", layout.name, len(blocks), len(rwps))
    return blocks


def order_by_erase_count(blocks: List[Block]) -> List[int]:
    """Валидные блоки от самого старого к самому новому: счётчик стираний, затем индекс."""
    groups: Dict[int, List[int]] = {}
    for b in blocks:
        if not b.is_valid:
            continue
        groups.setdefault(b.erase_count, []).append(b.index)

    order: List[int] = []
    for count in sorted(groups):
        order.extend(sorted(groups[count]))
    return order
