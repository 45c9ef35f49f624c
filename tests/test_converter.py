import numpy as np

from rehearsal.converter import ViewConverter
from rehearsal.domain.board_reveal import BoardState
from rehearsal.domain.hole_card_flip import HoleCardFlip
from rehearsal.domain.role_claims import claim_role, empty_claims
from rehearsal.domain.scenario_generator import generate_scenario
from rehearsal.models.schema_models import ScenarioSchema, SessionSchema

view_converter = ViewConverter()


def _session(claims=None, board_state=BoardState.pre_deal) -> SessionSchema:
    scenario = ScenarioSchema.model_validate(generate_scenario(3, np.random.default_rng(42)))
    scenario.game_state.board_state = board_state
    return SessionSchema(is_active=True, claimed_roles=claims or empty_claims(), scenario=scenario)


def test_lobby_marks_scenario_seats_and_own_role() -> None:
    session = _session(claim_role(empty_claims(), "dealer", "me"))
    lobby = view_converter.convert_session_to_lobby_view(session, "me")
    assert lobby.my_role == "dealer"
    active = {seat.role_id for seat in lobby.seats if seat.is_active}
    assert active == {str(seat) for seat in session.scenario.positions.all} | {"dealer"}
    mine = [seat.role_id for seat in lobby.seats if seat.is_me]
    assert mine == ["dealer"]


def test_dealer_sees_only_revealed_board_cards() -> None:
    session = _session(board_state=BoardState.turn)
    view = view_converter.convert_session_to_dealer_view(session)
    assert view.board[:4] == session.scenario.hand_info.board[:4]
    assert view.board[4] is None
    assert view.rule.id == session.scenario.rule.id


def test_player_without_the_seat_sees_no_cards() -> None:
    session = _session()
    seat = session.scenario.positions.np
    flip = HoleCardFlip()
    flip.toggle(0)
    view = view_converter.convert_session_to_player_view(session, seat, "stranger", flip)
    assert not view.holds_seat
    assert not view.has_hand
    assert [card.card for card in view.cards] == [None, None]


def test_player_sees_only_face_up_cards() -> None:
    session = _session()
    seat = session.scenario.positions.np
    session.claimed_roles[str(seat)] = "me"
    flip = HoleCardFlip()
    flip.toggle(1)
    view = view_converter.convert_session_to_player_view(session, seat, "me", flip)
    assert view.has_hand
    assert view.cards[0].card is None
    assert view.cards[1].card == session.scenario.player_hands[seat][1]


def test_director_sees_connected_seats_sorted() -> None:
    view = view_converter.convert_session_to_director_view(_session(), connected_seats=[5, 2, 5])
    assert view.connected_seats == [2, 5]
