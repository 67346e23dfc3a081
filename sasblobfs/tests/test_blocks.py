import pytest

from sasblobfs.blocks import build_block_list_body, decode_block_id, next_block_id
from sasblobfs.upload import MAX_NUMBER_BLOCKS


def test_first_block_id():
    assert next_block_id(0) == "MDAwMDAw"
    assert decode_block_id("MDAwMDAw") == 0


def test_block_ids_fixed_width_unique_and_increasing():
    ids = [next_block_id(i) for i in range(MAX_NUMBER_BLOCKS)]
    assert len({len(i) for i in ids}) == 1
    assert len(set(ids)) == len(ids)
    decoded = [decode_block_id(i) for i in ids]
    assert decoded == list(range(MAX_NUMBER_BLOCKS))


@pytest.mark.parametrize("counter", [-1, 10 ** 6])
def test_block_id_out_of_range(counter):
    with pytest.raises(ValueError):
        next_block_id(counter)


def test_block_list_body():
    body = build_block_list_body(["MDAwMDAw", "MDAwMDAx"])
    assert body == (
        b'<?xml version="1.0" encoding="utf-8"?>\n'
        b"<BlockList>\n"
        b"<Latest>MDAwMDAw</Latest>\n"
        b"<Latest>MDAwMDAx</Latest>\n"
        b"</BlockList>"
    )


def test_block_list_body_is_deterministic():
    ids = [next_block_id(i) for i in range(5)]
    assert build_block_list_body(ids) == build_block_list_body(list(ids))
    assert build_block_list_body(ids) != build_block_list_body(ids[::-1])
    assert build_block_list_body(ids) != build_block_list_body(ids[:2] + ids[3:] + ids[2:3])


def test_empty_block_list_body():
    assert build_block_list_body([]).endswith(b"<BlockList>\n</BlockList>")
