"""Per-connection face-up/face-down state of a player's two hole cards."""

from typing import List, Optional

from rehearsal.domain.board_reveal import BoardState

HOLE_CARD_COUNT = 2


class HoleCardFlip:
    """Local flip state for one player connection.

    The state is never written to the shared record. It resets to both
    hidden when the observed board moves into ``pre-deal`` from anything
    else, which is how a new scenario shows up to the player.
    """

    def __init__(self):
        self.face_up: List[bool] = [False] * HOLE_CARD_COUNT
        self._observed = False
        self._last_board_state: Optional[BoardState] = None

    def toggle(self, card_index: int) -> bool:
        """Flip one card. Returns False for an index that is not a hole card."""
        if card_index not in range(HOLE_CARD_COUNT):
            return False
        self.face_up[card_index] = not self.face_up[card_index]
        return True

    def reset(self):
        self.face_up = [False] * HOLE_CARD_COUNT

    def observe(self, board_state: Optional[BoardState]) -> bool:
        """Feed the board state of a new snapshot; ``None`` means no scenario.

        Returns True when this snapshot reset the flip state.
        """
        board_state = BoardState(board_state) if board_state is not None else None
        entered_pre_deal = (
            self._observed
            and self._last_board_state != BoardState.pre_deal
            and board_state == BoardState.pre_deal
        )
        self._observed = True
        self._last_board_state = board_state
        if entered_pre_deal:
            self.reset()
        return entered_pre_deal
