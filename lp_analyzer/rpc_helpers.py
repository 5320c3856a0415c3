#!/usr/bin/env python3
"""
RPC Helpers — calldata codec and block-pinned JSON-RPC client
=============================================================

Everything position_reader.py needs to talk to an EVM node without web3.py:

  • fixed-width ABI words (uint / int / address) and the CollectParams tuple
  • return-data decoding, including dynamic and bytes32 ``symbol()`` values
  • eth_call / batched eth_call / eth_blockNumber over httpx

Hex conventions: calldata is passed around WITH the 0x prefix (selector +
words), return data WITHOUT it, so slot arithmetic starts at offset 0.

Reference: https://docs.soliditylang.org/en/latest/abi-spec.html
"""

import httpx
from typing import List, Optional, Tuple, Union

# ── Word Geometry ───────────────────────────────────────────────────────

WORD_HEX = 64                 # one 32-byte ABI word as hex characters
WORD_BYTES = 32
ADDRESS_HEX = 40              # 20-byte address
ADDRESS_PAD_HEX = WORD_HEX - ADDRESS_HEX

Q96 = 2 ** 96                 # FixedPoint96.RESOLUTION
Q256 = 2 ** 256               # two's complement modulus for int256
MAX_UINT128 = 2 ** 128 - 1    # collect() amountMax: "everything owed"

ZERO_ADDRESS = "0x" + "0" * ADDRESS_HEX

# ── Symbol Normalization ────────────────────────────────────────────────
# Bridged tokens often ship a decorated symbol for the same asset.

SYMBOL_MAP = {
    "USD₮0": "USDT",
    "USD₮": "USDT",
    "USDT0": "USDT",
}


def normalize_symbol(raw_symbol: str) -> str:
    """Trim padding and map decorated symbols to their plain name."""
    cleaned = raw_symbol.strip().strip("\x00")
    return SYMBOL_MAP.get(cleaned, cleaned)


# ── Public Endpoints ────────────────────────────────────────────────────
# No API key required. RPC_URL_<CHAIN> overrides these (central_config).

RPC_URLS: dict[str, str] = {
    "bsc": "https://bsc-dataseed.binance.org",
    "ethereum": "https://1rpc.io/eth",
    "arbitrum": "https://1rpc.io/arb",
    "polygon": "https://1rpc.io/matic",
    "base": "https://1rpc.io/base",
    "optimism": "https://1rpc.io/op",
}


# ── Function Selectors ──────────────────────────────────────────────────

SELECTORS: dict[str, str] = {
    # NonfungiblePositionManager
    "positions": "0x99fbab88",   # positions(uint256)
    "ownerOf":   "0x6352211e",   # ownerOf(uint256)
    "collect":   "0xfc6f7865",   # collect((uint256,address,uint128,uint128))
    # Pool
    "slot0":     "0x3850c7bd",   # slot0()
    # Factory
    "getPool":   "0x1698ee82",   # getPool(address,address,uint24)
    # ERC-20
    "symbol":    "0x95d89b41",   # symbol()
    "decimals":  "0x313ce567",   # decimals()
}


# ── Encoding ────────────────────────────────────────────────────────────

def _unsigned_word(value: int, bits: int) -> str:
    if not 0 <= value < 2 ** bits:
        raise ValueError(f"value does not fit in uint{bits}")
    return format(value, f"0{WORD_HEX}x")


def encode_uint256(value: int) -> str:
    """
    >>> encode_uint256(1)[-4:]
    '0001'
    """
    return _unsigned_word(value, 256)


def encode_uint24(value: int) -> str:
    """Fee tier argument (500, 2500, 3000, 10000 …)."""
    return _unsigned_word(value, 24)


def encode_int24(value: int) -> str:
    """Tick argument, sign-extended to a full word.

    >>> encode_int24(-1) == "f" * 64
    True
    """
    if not -(2 ** 23) <= value < 2 ** 23:
        raise ValueError("value does not fit in int24")
    return format(value % Q256, f"0{WORD_HEX}x")


def encode_address(addr: str) -> str:
    """Left-pad a 0x address to one word (lower-case hex)."""
    body = addr[2:] if addr[:2].lower() == "0x" else addr
    if len(body) != ADDRESS_HEX:
        raise ValueError("address must be 20 bytes")
    return body.lower().rjust(WORD_HEX, "0")


def encode_collect_params(token_id: int, recipient: str, amount_max: int = MAX_UINT128) -> str:
    """
    CollectParams(tokenId, recipient, amount0Max, amount1Max).

    All members are static, so the tuple is laid out inline: four words,
    no offset header.
    """
    return "".join((
        encode_uint256(token_id),
        encode_address(recipient),
        _unsigned_word(amount_max, 128),
        _unsigned_word(amount_max, 128),
    ))


def to_block_tag(block: Union[int, str, None]) -> str:
    """
    >>> to_block_tag(0x1a2b3c)
    '0x1a2b3c'
    >>> to_block_tag(None)
    'latest'
    """
    if block is None:
        return "latest"
    if isinstance(block, str):
        return block
    return hex(block)


# ── Decoding ────────────────────────────────────────────────────────────

def _word(hex_data: str, slot: int) -> str:
    start = slot * WORD_HEX
    word = hex_data[start:start + WORD_HEX]
    if len(word) != WORD_HEX:
        raise ValueError(f"ABI response too short for slot {slot}")
    return word


def decode_uint(hex_data: str, slot: int = 0) -> int:
    """Unsigned integer in word ``slot`` of un-prefixed return data."""
    return int(_word(hex_data, slot), 16)


def decode_int(hex_data: str, slot: int = 0) -> int:
    """Two's complement signed integer in word ``slot``."""
    value = decode_uint(hex_data, slot)
    return value - Q256 if value >> 255 else value


def decode_address(hex_data: str, slot: int = 0) -> str:
    return "0x" + _word(hex_data, slot)[ADDRESS_PAD_HEX:]


def _decode_bytes32_text(hex_data: str) -> str:
    try:
        text = bytes.fromhex(hex_data[:WORD_HEX]).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return "UNK"
    return text.strip("\x00").strip() or "UNK"


def decode_string(hex_data: str) -> str:
    """
    Decode a ``string`` return value.

    Older tokens (MKR, SAI) return ``bytes32`` instead; anything that is
    not a well-formed dynamic string is read that way, and unreadable
    data becomes "UNK".
    """
    try:
        head = decode_uint(hex_data, 0) // WORD_BYTES
        size = decode_uint(hex_data, head)
        start = (head + 1) * WORD_HEX
        payload = hex_data[start:start + size * 2]
        if len(payload) != size * 2:
            raise ValueError("string payload truncated")
        return bytes.fromhex(payload).decode("utf-8").strip("\x00")
    except (ValueError, UnicodeDecodeError):
        return _decode_bytes32_text(hex_data)


# ── JSON-RPC Transport ──────────────────────────────────────────────────

def _call_payload(request_id: int, to: str, data: str, block_tag: str, sender: Optional[str]) -> dict:
    call = {"to": to, "data": data}
    if sender:
        call["from"] = sender
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "eth_call",
        "params": [call, block_tag],
    }


def _raise_for_error(reply: dict) -> None:
    error = reply.get("error")
    if error is None:
        return
    message = error.get("message", error) if isinstance(error, dict) else error
    raise RuntimeError(f"RPC error: {message}")


async def _post(rpc_url: str, body: Union[dict, list], timeout: float):
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(rpc_url, json=body)
        return resp.json()


async def eth_call(
    rpc_url: str,
    to: str,
    data: str,
    timeout: int = 20,
    block: Union[int, str, None] = None,
    sender: Optional[str] = None,
) -> str:
    """
    Single read-only call.

    Args:
        rpc_url: Node endpoint.
        to: Contract address.
        data: 0x-prefixed calldata.
        timeout: HTTP timeout, seconds.
        block: Block to read at (default "latest").
        sender: ``from`` address, for calls that check msg.sender.

    Returns:
        Return data without the 0x prefix.

    Raises:
        RuntimeError: node error, or no return data (no contract at ``to``).
    """
    reply = await _post(rpc_url, _call_payload(1, to, data, to_block_tag(block), sender), timeout)
    _raise_for_error(reply)
    raw = reply.get("result") or "0x"
    if len(raw) <= 2:
        raise RuntimeError("Empty response — contract may not exist at this address")
    return raw[2:]


async def eth_call_batch(
    rpc_url: str,
    calls: List[Tuple[str, str]],
    timeout: int = 20,
    block: Union[int, str, None] = None,
    sender: Optional[str] = None,
) -> List[str]:
    """
    Several eth_calls in one HTTP request, all at the same block tag.

    Returns one un-prefixed result per ``(to, data)`` pair, in input order.
    Empty results come back as "" rather than raising; the caller decides
    whether that is fatal.

    Raises:
        RuntimeError: any call errored, or the node dropped responses.
    """
    block_tag = to_block_tag(block)
    body = [
        _call_payload(i, to, data, block_tag, sender)
        for i, (to, data) in enumerate(calls, start=1)
    ]
    replies = await _post(rpc_url, body, timeout)

    # Some nodes answer a rejected batch with one error object
    if isinstance(replies, dict):
        _raise_for_error(replies)
        replies = [replies]

    if len(replies) != len(calls):
        raise RuntimeError(f"RPC batch returned {len(replies)} results for {len(calls)} calls")

    ordered = sorted(replies, key=lambda r: r.get("id") or 0)
    for reply in ordered:
        _raise_for_error(reply)
    return [(reply.get("result") or "0x")[2:] for reply in ordered]


async def eth_block_number(rpc_url: str, timeout: int = 10) -> int:
    """Current head block; the reader pins every snapshot call to it."""
    body = {"jsonrpc": "2.0", "id": 1, "method": "eth_blockNumber", "params": []}
    reply = await _post(rpc_url, body, timeout)
    _raise_for_error(reply)
    return int(reply["result"], 16)
