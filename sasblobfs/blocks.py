# -*- coding: utf-8 -*-
import base64

# Every block id of a blob must have the same length
BLOCK_ID_WIDTH = 6


def next_block_id(counter: int) -> str:
    """
    Block id for the ``counter``-th block of an upload

    The counter is zero-padded to a fixed number of digits before being base64
    encoded, so every id of an upload has the same length.

    Examples
    --------
    >>> next_block_id(0)
    'MDAwMDAw'
    >>> next_block_id(12)
    'MDAwMDEy'
    """
    if counter < 0:
        raise ValueError(f"Block counter must be positive, got {counter}")
    digits = f"{counter:0{BLOCK_ID_WIDTH}d}"
    if len(digits) > BLOCK_ID_WIDTH:
        raise ValueError(f"Block counter {counter} does not fit in a block id")
    return base64.b64encode(digits.encode("ascii")).decode("ascii")


def decode_block_id(block_id: str) -> int:
    return int(base64.b64decode(block_id).decode("ascii"))


def build_block_list_body(ordered_ids) -> bytes:
    """
    Request body committing ``ordered_ids`` as a blob, in the given order

    Each id is committed as ``Latest`` so the most recently staged content for
    that id is used.
    """
    body = '<?xml version="1.0" encoding="utf-8"?>\n<BlockList>'
    for block_id in ordered_ids:
        body += f"\n<Latest>{block_id}</Latest>"
    body += "\n</BlockList>"
    return body.encode("utf-8")
