# emulation/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .codec import words_to_bytes


@dataclass
class Block:
    """Один блок dataflash. data: собственная копия окна образа."""
    index: int
    size: int
    is_valid: bool
    erase_count: int
    data: bytes
    write_pointer: int = 0   # абсолютный адрес в образе, 0: неизвестен

    @property
    def base(self) -> int:
        return self.index * self.size

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "valid": self.is_valid,
            "erase_count": self.erase_count,
            "rwp": self.write_pointer,
        }


@dataclass(frozen=True)
class RecordEntry:
    """Восстановленная запись EEPROM (ID + слова данных + адреса происхождения)."""
    id: int
    word_index: int             # смещение первого слова данных внутри блока
    word_index_absolute: int    # то же, абсолютный адрес в образе
    words: Tuple[int, ...]
    reference_address: int      # абсолютный адрес ссылки/дескриптора
    block: int

    @property
    def length_words(self) -> int:
        return len(self.words)

    @property
    def data(self) -> bytes:
        return words_to_bytes(self.words)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "widx": self.word_index,
            "widx_abs": self.word_index_absolute,
            "length": self.length_words,
            "addr": self.reference_address,
            "block": self.block,
            "data": self.data.hex(),
        }


@dataclass(frozen=True)
class DecodeIssue:
    kind: str
    message: str
    record_id: int | None = None
    address: int | None = None
    block: int | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "id": self.record_id,
            "addr": self.address,
            "block": self.block,
            "message": self.message,
        }


@dataclass
class DecodeResult:
    family: str
    blocks: List[Block]
    order: List[int]
    records: Dict[int, RecordEntry] = field(default_factory=dict)
    issues: List[DecodeIssue] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "family": self.family,
            "blocks": len(self.blocks),
            "valid_blocks": len(self.order),
            "order": self.order,
            "records": len(self.records),
            "issues": [i.to_dict() for i in self.issues],
        }
