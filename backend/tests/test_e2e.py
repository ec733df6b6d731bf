import asyncio

import pytest

from conftest import FakeWebSocket
from wordrush.errors import DuplicateAnswer
from wordrush.runtime_phase_flow import on_round_timeout
from wordrush.runtime_rounds import build_requirements
from wordrush.runtime_types import Round
from wordrush.runtime_utils import now_ms


async def wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError('condition not reached in time')
        await asyncio.sleep(0.01)


def test_full_game_with_short_rounds(game, room_backend):
    async def scenario():
        owner = FakeWebSocket()
        guest = FakeWebSocket()
        room = await game.create_room('owner', owner, 'Ana')
        await game.update_settings(
            'owner',
            room.room_id,
            {
                'roundDuration': 60,
                'maxAnswersPerRound': 3,
                'minPlayers': 2,
                'totalRounds': 10,
                'themes': ['Hewan'],
            },
        )
        await game.join_by_invite('guest', guest, room.invite_code, 'Budi')
        await game.start_game('owner', room.room_id)

        first_start = guest.last('round-start')
        assert first_start['theme'] == 'Hewan'
        assert first_start['currentRound'] == 1
        assert sum(req['points'] for req in first_start['requirements']) == 100

        # Pin round one to known requirements; the scheduler keeps its own timer.
        async with room.lock:
            room.current_round = Round(
                id=room.current_round.id,
                theme='Hewan',
                requirements=build_requirements('S', 'A', 6, (30, 40, 30)),
                start_time=now_ms(),
                duration_ms=60_000,
            )
            # Shrink every later round so ten rounds finish quickly.
            room.settings.round_duration = 0.02

        record = await game.submit_answer('guest', 'Singa')
        assert record.is_valid
        assert record.points == 70
        with pytest.raises(DuplicateAnswer):
            await game.submit_answer('guest', 'Singa')

        # Fire the pending round-one timer early by rescheduling it.
        async with room.lock:
            game._schedule_timer(room, 0, on_round_timeout, 'playing')

        await wait_for(lambda: room.current_round_number >= 2)
        assert room.state == 'playing'
        await wait_for(lambda: room.state == 'finished')
        return room, owner, guest

    room, owner, guest = asyncio.run(scenario())

    round_numbers = [message['currentRound'] for message in owner.events('round-start')]
    assert round_numbers == list(range(1, 11))
    round_ends = owner.events('round-end')
    assert len(round_ends) == 10
    assert round_ends[0]['answers'][0]['answer'] == 'Singa'
    assert round_ends[0]['answers'][0]['points'] == 70

    game_end = guest.last('game-end')
    assert game_end['totalRounds'] == 10
    ranking = game_end['finalRanking']
    assert ranking[0]['totalScore'] == max(entry['totalScore'] for entry in ranking)
    assert ranking[0]['playerId'] == 'guest'
    assert ranking[0]['totalScore'] == 70
    assert len(game_end['topThree']) == 2
    assert room.current_round_number == 10
