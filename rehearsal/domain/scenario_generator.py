"""Build one concrete rehearsal scenario.

Randomness is passed in as a ``numpy.random.Generator`` so a seeded generator
reproduces a round exactly.
"""

from typing import Dict, List

import numpy as np

from rehearsal.domain.board_reveal import BoardState
from rehearsal.domain.camera_rules import SEAT_COUNT, circular_distance, select_rule
from rehearsal.domain.deck import Card, build_deck
from rehearsal.domain.scenario_library import HAND_SCENARIOS, HandTemplate

MIN_PLAYERS = 2
MAX_PLAYERS = SEAT_COUNT


def _codes(cards) -> List[str]:
    return [card.code for card in cards]


def generate_scenario(num_players: int, rng: np.random.Generator) -> dict:
    """Generate the scenario for the next round.

    Args:
        num_players (int): Number of active seats, 2 to 9
        rng (np.random.Generator): Randomness source

    Returns:
        dict: Scenario compatible with ScenarioSchema
    """
    if isinstance(num_players, bool) or not MIN_PLAYERS <= num_players <= MAX_PLAYERS:
        raise ValueError(f"num_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")

    template: HandTemplate = HAND_SCENARIOS[int(rng.integers(len(HAND_SCENARIOS)))]
    reserved = set(template.reserved_cards)
    remaining: List[Card] = [card for card in build_deck() if card not in reserved]
    remaining = [remaining[i] for i in rng.permutation(len(remaining))]

    seats = [int(seat) for seat in rng.permutation(np.arange(1, SEAT_COUNT + 1))]
    active_seats = seats[:num_players]
    np_seat = active_seats[0]
    op_seats = active_seats[1:]

    hands = [{"role": "NP", "cards": _codes(template.np_cards), "position": np_seat}]
    if op_seats:
        hands.append({"role": "OP", "cards": _codes(template.op_cards), "position": op_seats[0]})
    # Extra opponents are dealt off the top of the shuffled remainder.
    undealt = iter(remaining)
    for seat in op_seats[1:]:
        hands.append({"role": "OP", "cards": _codes([next(undealt), next(undealt)]), "position": seat})

    distance = circular_distance(np_seat, op_seats[0]) if op_seats else 0
    rule = select_rule(distance, rng)

    hands.sort(key=lambda hand: hand["position"])
    player_hands: Dict[int, List[str]] = {hand["position"]: list(hand["cards"]) for hand in hands}

    return {
        "hand_info": {
            "title": template.title,
            "board": _codes(template.board),
            "hands": hands,
        },
        "positions": {"np": np_seat, "op": op_seats, "all": active_seats},
        "rule": rule.public_fields(),
        "game_state": {"board_state": BoardState.pre_deal.value},
        "player_hands": player_hands,
        "num_players": num_players,
    }
