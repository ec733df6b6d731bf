import asyncio

import pytest

from conftest import FakeWebSocket
from wordrush.errors import AnswerLimitReached, DuplicateAnswer, NoActiveRound
from wordrush.runtime_answers import score_word
from wordrush.runtime_message_handlers import handle_message
from wordrush.runtime_rounds import build_requirements
from wordrush.runtime_types import LexiconEntry, Round
from wordrush.runtime_utils import now_ms
from wordrush.validation_cache import WordCheck

# Singa has five letters, so the length share is deliberately missed.
REQUIREMENTS = build_requirements('S', 'A', 6, (30, 40, 30))


def _entry(word, theme='Hewan'):
    normalized = word.lower()
    return LexiconEntry(word, theme, normalized, len(normalized), normalized[0], normalized[-1])


async def open_room(game, guests=1):
    sockets = {'owner': FakeWebSocket()}
    room = await game.create_room('owner', sockets['owner'], 'Ana')
    for index in range(guests):
        conn_id = f'guest{index + 1}'
        sockets[conn_id] = FakeWebSocket()
        await game.join_room(conn_id, sockets[conn_id], room.room_id, f'Guest {index + 1}')
    return room, sockets


async def open_round(game, guests=1, requirements=REQUIREMENTS):
    room, sockets = await open_room(game, guests)
    await game.start_game('owner', room.room_id)
    room.current_round = Round(
        id='fixed-round',
        theme='Hewan',
        requirements=requirements,
        start_time=now_ms(),
        duration_ms=60_000,
    )
    return room, sockets


def test_score_sums_every_satisfied_requirement():
    is_valid, points, met = score_word(WordCheck(_entry('Singa'), True), REQUIREMENTS)
    assert is_valid
    assert points == 70
    assert set(met) == {'prefix', 'suffix'}


def test_score_all_three_requirements():
    requirements = build_requirements('S', 'A', 5, (30, 40, 30))
    is_valid, points, met = score_word(WordCheck(_entry('Singa'), True), requirements)
    assert is_valid
    assert points == 100
    assert len(met) == 3


def test_score_unknown_or_unmatched_word_is_invalid():
    assert score_word(WordCheck(None, False), REQUIREMENTS) == (False, 0, ())
    assert score_word(WordCheck(_entry('Kuda'), False), REQUIREMENTS) == (False, 0, ())


def test_valid_answer_scores_and_broadcasts(game, room_backend):
    async def scenario():
        room, sockets = await open_round(game)
        record = await game.submit_answer('guest1', 'Singa')
        return room, sockets, record

    room, sockets, record = asyncio.run(scenario())

    assert record.is_valid
    assert record.points == 70
    guest = room.players['guest1']
    assert guest.score == 70
    assert guest.round_answers == 1
    for socket in sockets.values():
        assert socket.last('new-answer')['answer']['answer'] == 'Singa'
        summary = {item['socketId']: item for item in socket.last('players-update')['players']}
        assert summary['guest1']['score'] == 70
    stored = {item['socketId']: item for item in room_backend.records[room.room_id]['players']}
    assert stored['guest1']['score'] == 70
    assert room_backend.records[room.room_id]['currentRound']['answers'][0]['isValid'] is True


def test_duplicate_valid_answer_is_rejected_for_everyone(game):
    async def scenario():
        room, _ = await open_round(game)
        await game.submit_answer('guest1', 'Singa')
        with pytest.raises(DuplicateAnswer):
            await game.submit_answer('guest1', '  SINGA ')
        with pytest.raises(DuplicateAnswer):
            await game.submit_answer('owner', 'singa')
        return room

    room = asyncio.run(scenario())

    assert room.players['guest1'].round_answers == 1
    assert room.players['owner'].round_answers == 0
    assert len(room.current_round.answers) == 1


def test_invalid_answers_count_toward_limit(game):
    async def scenario():
        room, sockets = await open_round(game)
        records = [
            await game.submit_answer('guest1', 'Mangga'),
            await game.submit_answer('guest1', 'Mangga'),
            await game.submit_answer('guest1', 'Apel'),
        ]
        with pytest.raises(AnswerLimitReached):
            await game.submit_answer('guest1', 'Singa')
        return room, sockets, records

    room, sockets, records = asyncio.run(scenario())

    assert [record.is_valid for record in records] == [False, False, False]
    assert room.players['guest1'].round_answers == 3
    assert room.players['guest1'].score == 0
    assert len(sockets['owner'].events('new-answer')) == 3


def test_submit_without_active_round(game):
    async def scenario():
        room, _ = await open_room(game)
        with pytest.raises(NoActiveRound):
            await game.submit_answer('guest1', 'Singa')
        return room

    room = asyncio.run(scenario())
    assert room.players['guest1'].round_answers == 0


def test_backend_outage_records_invalid_answer(game, lexicon):
    lexicon.fail = True

    async def scenario():
        room, _ = await open_round(game)
        record = await game.submit_answer('guest1', 'Singa')
        return room, record

    room, record = asyncio.run(scenario())

    assert not record.is_valid
    assert record.points == 0
    assert room.players['guest1'].round_answers == 1
    assert game._ws_stats['validationFailures'] == 1


def test_rejections_reach_only_the_submitter(game):
    async def scenario():
        room, sockets = await open_round(game)
        await game.submit_answer('guest1', 'Singa')
        await handle_message(game, 'owner', sockets['owner'], {'type': 'submit-answer', 'answer': 'Singa'})
        return sockets

    sockets = asyncio.run(scenario())

    rejection = sockets['owner'].last('answer-rejected')
    assert rejection['code'] == 'DUPLICATE_ANSWER'
    assert sockets['guest1'].last('answer-rejected') is None


def test_empty_answer_is_a_payload_error(game):
    async def scenario():
        room, sockets = await open_round(game)
        await handle_message(game, 'guest1', sockets['guest1'], {'type': 'submit-answer', 'answer': '   '})
        return room, sockets

    room, sockets = asyncio.run(scenario())

    assert sockets['guest1'].last('room-error')['code'] == 'INVALID_PAYLOAD'
    assert room.players['guest1'].round_answers == 0
