import asyncio
import copy
import os
import sys

import pytest
from fastapi import WebSocketDisconnect

# Ensure the backend root (containing the `wordrush` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from wordrush.config import Settings
from wordrush.database_lexicon import build_lexicon_entries
from wordrush.lexicon_data import SEED_WORDS
from wordrush.runtime import GameRuntime
from wordrush.validation_cache import ValidationCache


class MemoryRoomBackend:
    """Durable room records kept in a dict, deep-copied like a real round trip."""

    def __init__(self):
        self.records = {}
        self.saves = 0
        self.failing_saves = 0

    async def load_room(self, room_id):
        record = self.records.get(room_id)
        return copy.deepcopy(record) if record is not None else None

    async def save_room(self, state_json):
        if self.failing_saves:
            self.failing_saves -= 1
            raise ConnectionError('database down')
        self.saves += 1
        self.records.pop(state_json['roomId'], None)
        self.records[state_json['roomId']] = copy.deepcopy(state_json)

    async def delete_room(self, room_id):
        self.records.pop(room_id, None)

    async def find_room_id_by_invite(self, invite_code):
        for room_id, record in reversed(list(self.records.items())):
            if record.get('inviteCode') == invite_code:
                return room_id
        return None

    async def list_stale_room_ids(self, idle_before_ms, keep_room_id):
        return [
            room_id
            for room_id, record in self.records.items()
            if room_id != keep_room_id
            and (
                (not record.get('isActive') and record.get('lastActivity', 0) < idle_before_ms)
                or not record.get('players')
            )
        ]


class MemoryLexicon:
    def __init__(self, words=None):
        entries = build_lexicon_entries(words or SEED_WORDS)
        self.entries = {(entry.theme, entry.normalized): entry for entry in entries}
        self.lookups = 0
        self.fail = False

    async def lookup(self, theme, normalized):
        self.lookups += 1
        if self.fail:
            raise ConnectionError('lexicon unavailable')
        return self.entries.get((theme, normalized))


class MemoryCache:
    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def get_json(self, key):
        return copy.deepcopy(self.values.get(key))

    async def set_json(self, key, value, ttl_seconds):
        self.values[key] = copy.deepcopy(value)
        self.ttls[key] = ttl_seconds


class FakeWebSocket:
    """Records what the server sends; replays scripted client frames."""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        self.sent.append(data)

    async def receive_text(self):
        await asyncio.sleep(0)
        if not self.frames:
            raise WebSocketDisconnect(code=1000)
        return self.frames.pop(0)

    def events(self, event_type):
        return [message for message in self.sent if message.get('type') == event_type]

    def last(self, event_type):
        matching = self.events(event_type)
        return matching[-1] if matching else None


def make_config(**overrides):
    config = Settings()
    config.default_room_id = 'DEFAULT'
    config.round_end_grace_ms = 10
    config.finished_room_retention_ms = 20
    config.default_room_autostart_delay_ms = 10
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


@pytest.fixture()
def room_backend():
    return MemoryRoomBackend()


@pytest.fixture()
def lexicon():
    return MemoryLexicon()


@pytest.fixture()
def cache():
    return MemoryCache()


@pytest.fixture()
def config():
    return make_config()


@pytest.fixture()
def game(room_backend, lexicon, cache, config):
    return GameRuntime(room_backend, ValidationCache(lexicon, cache), config)
