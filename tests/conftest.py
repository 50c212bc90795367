"""Сборщики синтетических образов dataflash/code flash для тестов."""
from __future__ import annotations

import struct

import pytest

from eep_tool.emulation.layout import ACTIVE_FLAG, RH850, V850E2

MASK32 = 0xFFFFFFFF


def put32(buf: bytearray, addr: int, value: int):
    struct.pack_into("<I", buf, addr, value & MASK32)


def v850_checksum(record_id: int, words) -> int:
    cks = MASK32 - record_id
    for w in words:
        cks = (cks - w) & MASK32
    return cks


class V850Image:
    """Образ V850E2: блоки по 0x1000, всё стёрто в 0xFF."""
    bs = V850E2.block_size

    def __init__(self, n_blocks: int):
        self.buf = bytearray(b"\xff" * (self.bs * n_blocks))

    def activate(self, index: int, erase_count: int, rwp_of_previous: int | None = None):
        base = index * self.bs
        for off in V850E2.guard_offsets:
            put32(self.buf, base + off, ACTIVE_FLAG)
        put32(self.buf, base + 0x28, erase_count)
        # rwp хранится поделённым на 2
        put32(self.buf, base + 0x30, (rwp_of_previous or 0) // 2)

    def ref(self, index: int, slot: int, widx: int, record_id: int, cks: int):
        addr = index * self.bs + 0x40 + slot * 0x10
        put32(self.buf, addr, (widx << 16) | record_id)
        put32(self.buf, addr + 0x08, cks)

    def cells(self, start: int, words):
        """Слова в 8-байтовых ячейках назад от абсолютного адреса start."""
        for k, w in enumerate(words):
            put32(self.buf, start - k * 8, w)

    def record(self, index: int, slot: int, record_id: int, start: int, words):
        self.cells(start, words)
        self.ref(index, slot, start // 8, record_id, v850_checksum(record_id, words))

    def bytes(self) -> bytes:
        return bytes(self.buf)


def rh_field(value: int) -> int:
    """3 байта значения + контрольный байт, чтобы сумма 4 байт была 0xFF."""
    value &= 0xFFFFFF
    cs = (0xFF - sum(value.to_bytes(3, "little"))) & 0xFF
    return value | (cs << 24)


class RHImage:
    """Образ RH850: блоки по 0x800. Дескрипторы вперёд с 0x18, данные назад с 0x7F8."""
    bs = RH850.block_size

    def __init__(self, n_blocks: int):
        self.buf = bytearray(b"\xff" * (self.bs * n_blocks))
        self.next_ref = {}
        self.dwp = {}

    def activate(self, index: int, erase_count: int, rwp_of_previous: int = 0):
        base = index * self.bs
        for off in RH850.guard_offsets:
            put32(self.buf, base + off, ACTIVE_FLAG)
        put32(self.buf, base + 0x10, rh_field(erase_count))
        put32(self.buf, base + 0x14, rh_field(rwp_of_previous))
        self.next_ref[index] = 0x24
        self.dwp[index] = self.bs - 8

    def append(self, index: int, record_id: int, words) -> int:
        """Записать дескриптор и данные так, как пишет EEL. Возвращает абсолютный адрес ссылки."""
        base = index * self.bs
        ref, widx = self.next_ref[index], self.dwp[index]
        for off in (0x04, 0x08, 0x0C):
            put32(self.buf, base + ref - off, ACTIVE_FLAG)
        put32(self.buf, base + ref, (widx << 16) | record_id)
        for j, w in enumerate(words):
            put32(self.buf, base + widx - j * 4, w)
        self.next_ref[index] = ref + 0x10
        self.dwp[index] = widx - len(words) * 4
        return base + ref

    def rwp(self, index: int) -> int:
        """Абсолютный rwp блока после последнего append."""
        return index * self.bs + self.next_ref[index] - 0x10 + 4

    def bytes(self) -> bytes:
        return bytes(self.buf)


def code_flash(table, header_addr: int = 0x100, rom_ptr: int = 0x200, size: int = 0x400) -> bytes:
    """table: список (id, длина в байтах)."""
    buf = bytearray(size)
    put32(buf, header_addr, (2 << 16) | 4)
    put32(buf, header_addr + 0x04, rom_ptr)
    put32(buf, header_addr + 0x08, 0xFEDE0000)
    put32(buf, header_addr + 0x0C, (0x10 << 16) | len(table))
    for i, (record_id, length) in enumerate(table):
        put32(buf, rom_ptr + i * 4, (length << 16) | record_id)
    return bytes(buf)


@pytest.fixture
def isolated_log(tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "session.jsonl"
    monkeypatch.setattr("eep_tool.logs.LOG_FILE", log_file)
    monkeypatch.setattr("eep_tool.main.LOG_FILE", log_file)
    return log_file
