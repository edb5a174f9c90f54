"""Display names for deployed tokens and collections."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Literal

NameKind = Literal["token", "nft"]

_WORDS: dict[str, dict[str, tuple[str, ...]]] = {
    "token": {
        "prefixes": ("Meta", "Crypto", "Quantum", "Neon", "Hyper", "Omni", "Poly", "X", "Zero", "Infinite"),
        "cores": ("Chain", "Ledger", "Vault", "Node", "Protocol", "Net", "Web", "Bit", "Byte", "Hash"),
        "suffixes": ("Coin", "Token", "Pay", "Cash", "Dex", "Swap", "Fi", "Nomics", "X", "Dao"),
    },
    "nft": {
        "prefixes": (
            "Cyber", "Digital", "Virtual", "Meta", "Crypto", "NFT", "Pixel", "Block", "DeFi", "Web3"
        ),
        "cores": ("Punk", "Ape", "Doge", "Frog", "Alien", "Wizard", "Dragon", "Samurai", "Kong", "Ghost"),
        "suffixes": (
            "Collectible", "Art", "Item", "Gem", "Treasure",
            "Relic", "Legend", "Memorabilia", "Token", "Pass",
        ),
    },
}


@dataclass(frozen=True)
class DisplayName:
    name: str
    symbol: str


def generate_name(kind: NameKind, rng: random.Random | None = None) -> DisplayName:
    """Pick a random "Prefix Core Suffix" (or "Prefix Suffix") name.

    The symbol is always the three initials, even when the core word is
    left out of the name.
    """
    if kind not in _WORDS:
        raise ValueError(f"Unknown name kind: {kind}")
    rng = rng or random.Random()
    words = _WORDS[kind]

    prefix = rng.choice(words["prefixes"])
    core = rng.choice(words["cores"])
    suffix = rng.choice(words["suffixes"])

    name = f"{prefix} {core} {suffix}" if rng.random() > 0.5 else f"{prefix} {suffix}"
    symbol = "".join(part[0].upper() for part in (prefix, core, suffix))
    return DisplayName(name=name, symbol=symbol)
