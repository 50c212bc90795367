import pytest

from eep_tool.emulation.blocks import DataflashImage, build_catalog, order_by_erase_count
from eep_tool.emulation.errors import GeometryError
from eep_tool.emulation.io import EepromDecoder
from eep_tool.emulation.layout import RH850, V850E2
from eep_tool.emulation.model import Block
from eep_tool.emulation.v850e2 import V850E2Strategy

from conftest import RHImage, V850Image


def _block(index, erase_count, valid=True):
    return Block(index=index, size=0x10, is_valid=valid, erase_count=erase_count, data=b"")


@pytest.mark.parametrize("size", [0, 0x800, 0x1001, 0x1FFF])
def test_geometry_error(size):
    with pytest.raises(GeometryError):
        DataflashImage(b"\xff" * size, V850E2.block_size)
    with pytest.raises(GeometryError):
        EepromDecoder(b"\xff" * size, V850E2Strategy())


def test_image_windows():
    image = DataflashImage(bytes(range(256)) * 32, RH850.block_size)
    assert image.n_blocks == 4
    assert image.window(1) == (bytes(range(256)) * 32)[0x800:0x1000]


def test_order_same_erase_count_by_index():
    blocks = [_block(0, 5), _block(1, 5), _block(2, 5)]
    assert order_by_erase_count(blocks) == [0, 1, 2]


def test_order_lower_erase_count_first_regardless_of_index():
    blocks = [_block(0, 9), _block(1, 3), _block(2, 7, valid=False), _block(3, 3), _block(4, 4)]
    assert order_by_erase_count(blocks) == [1, 3, 4, 0]


def test_v850e2_catalog_rwp_registered_on_previous_block():
    img = V850Image(3)
    img.activate(0, erase_count=1)
    img.activate(1, erase_count=1, rwp_of_previous=0x0200)
    # блок 2 не активен
    blocks = build_catalog(DataflashImage(img.bytes(), V850E2.block_size), V850E2)

    assert [b.is_valid for b in blocks] == [True, True, False]
    assert blocks[0].write_pointer == 0x0200
    assert blocks[1].write_pointer == 0
    assert blocks[0].erase_count == 1
    assert order_by_erase_count(blocks) == [0, 1]


def test_rh850_header_checksums_required():
    img = RHImage(2)
    img.activate(0, erase_count=3)
    img.activate(1, erase_count=4, rwp_of_previous=0x38)
    img.buf[0x800 + 0x13] ^= 0x01  # ломаем контрольный байт счётчика блока 1
    blocks = build_catalog(DataflashImage(img.bytes(), RH850.block_size), RH850)

    assert blocks[0].is_valid
    assert blocks[0].erase_count == 3
    assert not blocks[1].is_valid
    # rwp из невалидного блока не учитывается
    assert blocks[0].write_pointer == 0


def test_rwp_outside_image_is_reported():
    img = V850Image(1)
    img.activate(0, erase_count=1, rwp_of_previous=0x4000)
    issues = []
    blocks = build_catalog(DataflashImage(img.bytes(), V850E2.block_size), V850E2, issues)

    assert blocks[0].write_pointer == 0
    assert len(issues) == 1 and issues[0].kind == "rwp"
