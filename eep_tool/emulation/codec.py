# emulation/codec.py
"""Примитивы чтения/записи 32-битных слов и 8-битная контрольная сумма.

Всё, что выше (каталог блоков, движки восстановления записей), ходит в
буферы только через эти функции.
"""
from __future__ import annotations

from typing import Iterable

from .errors import WordRangeError

WORD = 4
MASK32 = 0xFFFFFFFF


def to_hex(num: int, pad: int = 2, prefix: bool = True) -> str:
    """
    10 -> 0x0A, 17 -> 0x11, to_hex(17, 3) -> 0x011, to_hex(17, 2, False) -> 11
    """
    return ("0x" if prefix else "") + f"{num:0{pad}X}"


def read_uint32(buf: bytes, addr: int = 0, little_endian: bool = True) -> int:
    """
    Прочитать беззнаковое 32-битное слово по адресу addr.
    Буфер короче 4 байт дополняется нулями со стороны старших байтов,
    поэтому 3-байтовое поле заголовка читается как 24-битное значение.
    """
    if len(buf) < WORD:
        pad = bytes(WORD - len(buf))
        buf = bytes(buf) + pad if little_endian else pad + bytes(buf)
    if addr < 0 or len(buf) < addr + WORD:
        raise WordRangeError(f"Cannot read word at addr {to_hex(addr)}, buffer is of length {to_hex(len(buf))}")
    return int.from_bytes(buf[addr:addr + WORD], "little" if little_endian else "big")


def int32_to_word(num: int, little_endian: bool = True) -> bytes:
    if num < -0x80000000 or num > MASK32:
        raise ValueError(f"Number {num} is not int32")
    return (num & MASK32).to_bytes(WORD, "little" if little_endian else "big")


def words_to_bytes(words: Iterable[int]) -> bytes:
    return b"".join(int32_to_word(w) for w in words)


def checksum8(buf: bytes, start: int, end: int) -> int:
    """8-битная сумма байтов buf[start..end] (end ВКЛЮЧИТЕЛЬНО)."""
    if start < 0 or end >= len(buf):
        raise WordRangeError(f"Checksum range {to_hex(start)}..{to_hex(end)} is outside buffer of length {to_hex(len(buf))}")
    return sum(buf[start:end + 1]) & 0xFF
