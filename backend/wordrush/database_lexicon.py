from __future__ import annotations

from typing import Iterable, Mapping

import asyncpg

from .runtime_types import LexiconEntry
from .runtime_utils import normalize_word


def build_lexicon_entry(word: str, theme: str) -> LexiconEntry:
    normalized = normalize_word(word)
    return LexiconEntry(
        word=word.strip(),
        theme=theme,
        normalized=normalized,
        length=len(normalized),
        first_letter=normalized[:1],
        last_letter=normalized[-1:],
    )


def build_lexicon_entries(words_by_theme: Mapping[str, Iterable[str]]) -> list[LexiconEntry]:
    return [
        build_lexicon_entry(word, theme)
        for theme, words in words_by_theme.items()
        for word in words
        if normalize_word(word)
    ]


async def lookup_word(pool: asyncpg.Pool, theme: str, normalized: str) -> LexiconEntry | None:
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            SELECT word, theme, normalized, length, first_letter, last_letter
            FROM lexicon_words
            WHERE theme = $1 AND normalized = $2
            """,
            theme,
            normalized,
        )

    if row is None:
        return None

    return LexiconEntry(
        word=row["word"],
        theme=row["theme"],
        normalized=row["normalized"],
        length=int(row["length"]),
        first_letter=row["first_letter"],
        last_letter=row["last_letter"],
    )


async def count_words(pool: asyncpg.Pool) -> int:
    async with pool.acquire() as conn:
        return int(await conn.fetchval("SELECT COUNT(*) FROM lexicon_words") or 0)


async def insert_words(pool: asyncpg.Pool, entries: list[LexiconEntry]) -> None:
    async with pool.acquire() as conn:
        await conn.executemany(
            """
            INSERT INTO lexicon_words (word, theme, normalized, length, first_letter, last_letter)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (theme, normalized) DO NOTHING
            """,
            [
                (
                    entry.word,
                    entry.theme,
                    entry.normalized,
                    entry.length,
                    entry.first_letter,
                    entry.last_letter,
                )
                for entry in entries
            ],
        )
