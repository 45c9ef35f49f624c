"""Fixed catalog of rehearsal hand scenarios.

Each template pins the NP hand, the first OP hand and the whole board, so the
nine template cards must be distinct.
"""

from dataclasses import dataclass
from typing import Tuple

from rehearsal.domain.deck import Card


@dataclass(frozen=True)
class HandTemplate:
    title: str
    np_cards: Tuple[Card, Card]
    op_cards: Tuple[Card, Card]
    board: Tuple[Card, Card, Card, Card, Card]

    @property
    def reserved_cards(self) -> Tuple[Card, ...]:
        return self.np_cards + self.op_cards + self.board


def _template(title: str, np_cards: str, op_cards: str, board: str) -> HandTemplate:
    def cards(codes: str) -> tuple:
        return tuple(Card.from_code(code) for code in codes.split())

    template = HandTemplate(
        title=title,
        np_cards=cards(np_cards),
        op_cards=cards(op_cards),
        board=cards(board),
    )
    reserved = template.reserved_cards
    if len(set(reserved)) != len(reserved):
        raise ValueError(f"Template {title!r} uses a card twice")
    return template


HAND_SCENARIOS: Tuple[HandTemplate, ...] = (
    _template("필연적인 충돌 (AA vs KK)", "A♠ A♥", "K♠ K♥", "9♦ 7♣ 2♥ 5♠ Q♣"),
    _template("셋 오버 셋 (Set over Set)", "8♠ 8♦", "3♠ 3♣", "A♥ 8♣ 3♦ K♠ 2♥"),
    _template("역전의 강 (Flush vs Full House)", "A♠ K♠", "7♦ 7♥", "K♦ 7♠ 2♠ Q♣ 7♣"),
)
