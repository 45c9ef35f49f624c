"""Board reveal state machine.

The dealer taps board cards by index. Legal taps move the board forward one
street; every other tap is ignored. Nothing moves the board backwards: only a
freshly generated scenario starts again from ``pre-deal``.
"""

from enum import Enum

BOARD_SIZE = 5


class BoardState(str, Enum):
    pre_deal = "pre-deal"
    flop = "flop"
    turn = "turn"
    river = "river"


_TRANSITIONS = {
    (BoardState.pre_deal, 0): BoardState.flop,
    (BoardState.pre_deal, 1): BoardState.flop,
    (BoardState.pre_deal, 2): BoardState.flop,
    (BoardState.flop, 3): BoardState.turn,
    (BoardState.turn, 4): BoardState.river,
}

_REVEALED_CARDS = {
    BoardState.pre_deal: 0,
    BoardState.flop: 3,
    BoardState.turn: 4,
    BoardState.river: BOARD_SIZE,
}


def next_board_state(state: BoardState, card_index: int) -> BoardState:
    """Return the state after the dealer taps ``card_index``.

    Out-of-order or repeated taps return ``state`` unchanged.
    """
    return _TRANSITIONS.get((BoardState(state), card_index), BoardState(state))


def revealed_card_count(state: BoardState) -> int:
    return _REVEALED_CARDS[BoardState(state)]
