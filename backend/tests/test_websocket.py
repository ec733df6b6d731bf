import asyncio
import json

import pytest
from fastapi import HTTPException

from conftest import FakeWebSocket
from wordrush.api import rooms as rooms_api
from wordrush.api import system as system_api


def frame(event_type, **payload):
    return json.dumps({'type': event_type, **payload})


def test_websocket_session_lifecycle(game, room_backend):
    socket = FakeWebSocket(
        [
            frame('ping'),
            'not json',
            json.dumps(['not', 'an', 'object']),
            frame('create-room', playerData={'username': 'Ana'}),
            frame('submit-answer', answer='Singa'),
            frame('start-game'),
            frame('join-room', roomId='MISSING', playerData={'username': 'Ana'}),
            frame('mystery-event'),
        ]
    )

    asyncio.run(game.handle_websocket(socket))

    assert socket.accepted
    connected = socket.sent[0]
    assert connected['type'] == 'connected'
    assert socket.last('pong') is not None
    created = socket.last('room-created')
    assert created['isOwner'] is True
    assert socket.last('answer-rejected')['code'] == 'NO_ACTIVE_ROUND'
    errors = [message['code'] for message in socket.events('room-error')]
    assert errors == ['BELOW_MINIMUM_PLAYERS', 'ROOM_NOT_FOUND']

    stats = game._ws_stats
    assert stats['malformedMessages'] == 2
    assert stats['unknownMessages'] == 1
    assert stats['activeConnections'] == 0
    assert stats['disconnects'] == 1
    # The creator left the room when the socket closed, so it is gone.
    assert game.store.live(created['roomId']) is None
    assert room_backend.records == {}


def test_messages_before_joining_are_rejected(game):
    socket = FakeWebSocket(
        [
            frame('submit-answer', answer='Singa'),
            frame('transfer-ownership', newOwnerId='someone'),
            frame('join-by-invite', playerData={'username': 'Ana'}),
        ]
    )

    asyncio.run(game.handle_websocket(socket))

    codes = [message['code'] for message in socket.events('room-error')]
    assert codes == ['NOT_IN_ROOM', 'NOT_IN_ROOM', 'INVALID_PAYLOAD']


def test_internal_errors_keep_the_connection_open(game, room_backend):
    async def broken_save(state_json):
        raise ConnectionError('database down')

    room_backend.save_room = broken_save
    socket = FakeWebSocket([frame('create-room'), frame('ping')])

    asyncio.run(game.handle_websocket(socket))

    assert socket.last('room-error')['code'] == 'INTERNAL_ERROR'
    assert socket.last('pong') is not None


def test_room_and_invite_lookups(game, monkeypatch):
    monkeypatch.setattr(rooms_api, 'runtime', game)

    async def scenario():
        room = await game.create_room('owner', FakeWebSocket(), 'Ana')
        summary = await rooms_api.room_summary(room.room_id.lower())
        invite = await rooms_api.resolve_invite(room.invite_code)
        with pytest.raises(HTTPException) as missing_room:
            await rooms_api.room_summary('NOPE00')
        with pytest.raises(HTTPException) as missing_invite:
            await rooms_api.resolve_invite('ZZZZZZ')
        return room, summary, invite, missing_room.value, missing_invite.value

    room, summary, invite, missing_room, missing_invite = asyncio.run(scenario())

    assert summary['roomId'] == room.room_id
    assert summary['playerCount'] == 1
    assert summary['gameStatus'] == 'waiting'
    assert 'inviteCode' not in summary
    assert invite == {'inviteCode': room.invite_code, 'roomId': room.room_id}
    assert missing_room.status_code == 404
    assert missing_invite.status_code == 404


def test_ws_stats_endpoint(game, monkeypatch):
    monkeypatch.setattr(system_api, 'runtime', game)

    async def scenario():
        await game.create_room('owner', FakeWebSocket(), 'Ana')
        return await system_api.websocket_stats()

    stats = asyncio.run(scenario())

    assert stats['activeRooms'] == 1
    assert stats['rooms'][0]['connections'] == 1
    assert 'validation' in stats
