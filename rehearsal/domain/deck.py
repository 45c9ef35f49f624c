"""Cards and the standard 52-card deck.

Cards travel as strings of rank followed by suit (``"A♠"``, ``"10♦"``),
which is also how the session document stores them.
"""

from dataclasses import dataclass
from typing import List

RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
SUITS = ("♠", "♥", "♦", "♣")
DECK_SIZE = len(RANKS) * len(SUITS)


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self):
        if self.rank not in RANKS:
            raise ValueError(f"Unknown rank: {self.rank!r}")
        if self.suit not in SUITS:
            raise ValueError(f"Unknown suit: {self.suit!r}")

    @classmethod
    def from_code(cls, code: str) -> "Card":
        """Parse a card code such as ``"K♠"`` or ``"10♥"``."""
        if not isinstance(code, str) or len(code) < 2:
            raise ValueError(f"Invalid card code: {code!r}")
        return cls(rank=code[:-1], suit=code[-1])

    @property
    def code(self) -> str:
        return f"{self.rank}{self.suit}"

    def __str__(self) -> str:
        return self.code


def validate_card_code(code: str) -> str:
    """Return the code unchanged if it names a real card."""
    return Card.from_code(code).code


def build_deck() -> List[Card]:
    """Return all 52 cards, suit by suit."""
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]
