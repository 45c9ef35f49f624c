import pytest

from rehearsal.domain.board_reveal import BoardState, next_board_state, revealed_card_count

PRE, FLOP, TURN, RIVER = BoardState.pre_deal, BoardState.flop, BoardState.turn, BoardState.river


@pytest.mark.parametrize(
    "state, card_index, expected",
    [
        (PRE, 0, FLOP),
        (PRE, 1, FLOP),
        (PRE, 2, FLOP),
        (PRE, 3, PRE),
        (PRE, 4, PRE),
        (FLOP, 0, FLOP),
        (FLOP, 3, TURN),
        (FLOP, 4, FLOP),
        (TURN, 2, TURN),
        (TURN, 3, TURN),
        (TURN, 4, RIVER),
        (RIVER, 0, RIVER),
        (RIVER, 4, RIVER),
        (PRE, 7, PRE),
        (PRE, -1, PRE),
    ],
)
def test_transition_table(state: BoardState, card_index: int, expected: BoardState) -> None:
    assert next_board_state(state, card_index) is expected


def test_reveal_is_monotonic_under_mistimed_taps() -> None:
    state = PRE
    state = next_board_state(state, 3)
    assert state is PRE
    state = next_board_state(state, 0)
    assert state is FLOP
    state = next_board_state(state, 3)
    assert state is TURN
    state = next_board_state(state, 0)
    assert state is TURN


def test_accepts_wire_values() -> None:
    assert next_board_state("pre-deal", 1) is FLOP


def test_revealed_card_counts() -> None:
    assert [revealed_card_count(state) for state in (PRE, FLOP, TURN, RIVER)] == [0, 3, 4, 5]
