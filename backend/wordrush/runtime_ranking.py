from __future__ import annotations

from typing import Iterable

from .runtime_constants import TOP_RANKING_SIZE
from .runtime_types import PlayerConnection, RankingEntry


def build_final_ranking(players: Iterable[PlayerConnection]) -> list[RankingEntry]:
    # sorted() is stable, so tied scores keep join order and still get distinct ranks.
    ordered = sorted(players, key=lambda player: player.score, reverse=True)
    return [
        RankingEntry(
            player_id=player.conn_id,
            username=player.username,
            total_score=player.score,
            rank=index,
        )
        for index, player in enumerate(ordered, start=1)
    ]


def top_ranking(ranking: list[RankingEntry], size: int = TOP_RANKING_SIZE) -> list[RankingEntry]:
    return ranking[: max(0, size)]
