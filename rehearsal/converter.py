from typing import Iterable, List, Optional

from rehearsal.domain.board_reveal import revealed_card_count
from rehearsal.domain.hole_card_flip import HoleCardFlip
from rehearsal.domain.role_claims import DEALER_ROLE, ROLE_IDS, role_held_by
from rehearsal.models.dc_models import (
    DealerViewModel,
    DirectorViewModel,
    HoleCardModel,
    LobbyViewModel,
    PlayerViewModel,
    SeatStatusModel,
)
from rehearsal.models.schema_models import SessionSchema


class ViewConverter:
    """This class projects the shared session into what each participant may see."""

    def convert_session_to_director_view(
        self, session: SessionSchema, connected_seats: Iterable[int] = ()
    ) -> DirectorViewModel:
        """The director sees everything, including every hand.

        Args:
            session (SessionSchema): The current session record
            connected_seats (Iterable[int]): Seats with a live player connection

        Returns:
            DirectorViewModel: Full view for the director screen
        """
        return DirectorViewModel(
            is_active=session.is_active,
            claimed_roles=session.claimed_roles,
            scenario=session.scenario,
            connected_seats=sorted(set(connected_seats)),
        )

    def convert_session_to_lobby_view(self, session: SessionSchema, identity_id) -> LobbyViewModel:
        """Seat map for role selection, relative to ``identity_id``.

        Seats outside the current scenario are not active; the dealer slot
        always is.
        """
        identity_id = str(identity_id)
        active_seats: List[int] = list(session.scenario.positions.all) if session.scenario else []
        seats = []
        for role_id in ROLE_IDS:
            holder = session.claimed_roles[role_id]
            seats.append(
                SeatStatusModel(
                    role_id=role_id,
                    claimed=holder is not None,
                    is_me=holder == identity_id,
                    is_active=role_id == DEALER_ROLE or int(role_id) in active_seats,
                )
            )
        return LobbyViewModel(
            has_scenario=session.scenario is not None,
            my_role=role_held_by(session.claimed_roles, identity_id),
            active_seats=active_seats,
            seats=seats,
        )

    def convert_session_to_dealer_view(self, session: SessionSchema) -> DealerViewModel:
        """Board cards not yet revealed are sent as None."""
        scenario = session.scenario
        if scenario is None:
            return DealerViewModel(has_scenario=False)
        board_state = scenario.game_state.board_state
        shown = revealed_card_count(board_state)
        board: List[Optional[str]] = [
            card if index < shown else None for index, card in enumerate(scenario.hand_info.board)
        ]
        return DealerViewModel(
            has_scenario=True,
            board_state=board_state,
            board=board,
            rule=scenario.rule,
        )

    def convert_session_to_player_view(
        self, session: Optional[SessionSchema], seat: int, identity_id, flip: HoleCardFlip
    ) -> PlayerViewModel:
        """A player's own hole cards, masked by the connection's flip state.

        The hand is only shown while ``identity_id`` holds ``seat``, and a
        face-down card never carries its code.
        """
        identity_id = str(identity_id)
        holds_seat = session is not None and session.claimed_roles.get(str(seat)) == identity_id
        scenario = session.scenario if session is not None else None
        hand = scenario.player_hands.get(seat) if scenario is not None and holds_seat else None
        cards = [
            HoleCardModel(
                face_up=hand is not None and face_up,
                card=hand[index] if hand is not None and face_up else None,
            )
            for index, face_up in enumerate(flip.face_up)
        ]
        return PlayerViewModel(
            seat=seat,
            holds_seat=holds_seat,
            has_scenario=scenario is not None,
            has_hand=hand is not None,
            board_state=scenario.game_state.board_state if scenario is not None else None,
            cards=cards,
        )
