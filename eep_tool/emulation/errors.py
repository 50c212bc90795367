# emulation/errors.py
from __future__ import annotations


class EmulationError(Exception):
    """Базовая ошибка декодера EEPROM-эмуляции."""


class GeometryError(EmulationError, ValueError):
    """Размер образа не кратен размеру блока (или образ пуст)."""


class TableError(EmulationError, ValueError):
    """Заголовок или таблица ID->длина в образе code flash недоступны или некорректны."""


class WordRangeError(EmulationError, IndexError):
    """Чтение слова за пределами буфера."""

    kind = "range"


class RecordError(EmulationError):
    """Ошибка одной записи: пропускаем её, сканирование продолжается."""

    kind = "record"

    def __init__(self, message: str, record_id: int | None = None, address: int | None = None):
        super().__init__(message)
        self.record_id = record_id
        self.address = address


class ChecksumError(RecordError):
    kind = "checksum"


class MissingBlockError(RecordError):
    kind = "missing_block"


class GuardError(RecordError):
    kind = "guard"
