"""Camera workflow rules and the seat-distance decision procedure.

A rule's ``applies`` predicate stays in this module. Only the fields returned
by ``CameraRule.public_fields`` ever reach the session document.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

SEAT_COUNT = 9
ADJACENT_DISTANCE = 2
# Probability of the NP-only workflow when the matchup is across the table.
LONG_RANGE_SOLO_PROBABILITY = 0.6


@dataclass(frozen=True)
class CameraRule:
    id: int
    title: str
    main_cam: str
    sub_cam: str
    applies: Callable[[int], bool]
    note: Optional[str] = None

    def public_fields(self) -> dict:
        fields = {
            "id": self.id,
            "title": self.title,
            "main_cam": self.main_cam,
            "sub_cam": self.sub_cam,
        }
        if self.note is not None:
            fields["note"] = self.note
        return fields


def circular_distance(first_seat: int, second_seat: int, seat_count: int = SEAT_COUNT) -> int:
    """Distance between two seats around a round table."""
    gap = abs(first_seat - second_seat)
    return min(gap, seat_count - gap)


ADJACENT_RULE = CameraRule(
    id=1,
    title="인접/근접 대결",
    main_cam="그룹 샷 (NP와 OP를 함께 촬영)",
    sub_cam="보드 샷",
    applies=lambda distance: distance <= ADJACENT_DISTANCE,
)
LONG_RANGE_SOLO_RULE = CameraRule(
    id=2,
    title="원거리 대결",
    main_cam="NP A컷 (NP만 타이트하게 촬영)",
    sub_cam="상대방 + 보드 샷",
    applies=lambda distance: distance > ADJACENT_DISTANCE,
)
LONG_RANGE_GROUP_RULE = CameraRule(
    id=3,
    title="원거리 대결 (샷 중첩)",
    main_cam="그룹 샷 (NP와 OP를 함께 촬영)",
    sub_cam="보드 샷",
    applies=lambda distance: distance > ADJACENT_DISTANCE,
    note="서브캠에 NP가 걸리는 경우, 즉시 이 워크플로우로 전환.",
)

CAMERA_RULES = (ADJACENT_RULE, LONG_RANGE_SOLO_RULE, LONG_RANGE_GROUP_RULE)


def select_rule(distance: int, rng: np.random.Generator) -> CameraRule:
    """Pick the camera rule for the NP / first OP seat distance.

    Close matchups always get the adjacency rule and draw nothing from ``rng``.
    Otherwise the two long-range rules are weighted 0.6 / 0.4.
    """
    if ADJACENT_RULE.applies(distance):
        return ADJACENT_RULE
    if rng.random() < LONG_RANGE_SOLO_PROBABILITY:
        return LONG_RANGE_SOLO_RULE
    return LONG_RANGE_GROUP_RULE
