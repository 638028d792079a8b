"""Minimal ABIs for the three game contracts."""

from __future__ import annotations

from typing import Any

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]], mutability: str) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "stateMutability": mutability,
    }


BOSS_LOG_ABI: list[dict[str, Any]] = [
    _fn(
        "emitBossKilled",
        [
            ("gateId", "string"),
            ("gateRank", "string"),
            ("bossId", "string"),
            ("participants", "address[]"),
            ("contributions", "uint256[]"),
        ],
        [],
        "nonpayable",
    ),
    {
        "type": "event",
        "name": "BossKilled",
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "gateId", "type": "string"},
            {"indexed": True, "name": "bossId", "type": "string"},
            {"indexed": False, "name": "participants", "type": "address[]"},
            {"indexed": False, "name": "contributions", "type": "uint256[]"},
        ],
    },
]

RELIC_721_ABI: list[dict[str, Any]] = [
    _fn(
        "mint",
        [("to", "address"), ("relicType", "string"), ("affixInts", "uint256[]"), ("ipfsCid", "string")],
        [("", "uint256")],
        "nonpayable",
    ),
    _fn("ownerOf", [("tokenId", "uint256")], [("", "address")], "view"),
    _fn("tokenURI", [("tokenId", "uint256")], [("", "string")], "view"),
    _fn("totalSupply", [], [("", "uint256")], "view"),
    _fn("balanceOf", [("owner", "address")], [("", "uint256")], "view"),
    _fn("tokenOfOwnerByIndex", [("owner", "address"), ("index", "uint256")], [("", "uint256")], "view"),
    {
        "type": "event",
        "name": "Transfer",
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": True, "name": "tokenId", "type": "uint256"},
        ],
    },
]

PLAYER_CARD_SBT_ABI: list[dict[str, Any]] = [
    _fn(
        "updateProgress",
        [("addr", "address"), ("rank", "string"), ("level", "uint256"), ("xp", "uint256")],
        [],
        "nonpayable",
    ),
    _fn("getProgress", [("addr", "address")], [("rank", "string"), ("level", "uint256"), ("xp", "uint256")], "view"),
]
