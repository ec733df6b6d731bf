from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from .errors import ValidationBackendUnavailable
from .runtime_types import LexiconEntry, Requirement, RequirementType

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get_json(self, key: str) -> Any: ...

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None: ...


class LexiconSource(Protocol):
    async def lookup(self, theme: str, normalized: str) -> LexiconEntry | None: ...


@dataclass(frozen=True)
class WordCheck:
    entry: LexiconEntry | None
    satisfies_any: bool

    @property
    def exists(self) -> bool:
        return self.entry is not None


def requirement_matches(entry: LexiconEntry, requirement: Requirement) -> bool:
    if requirement.type == "prefix":
        return entry.first_letter == str(requirement.value).lower()
    if requirement.type == "suffix":
        return entry.last_letter == str(requirement.value).lower()
    if requirement.type == "length":
        try:
            return entry.length == int(requirement.value)
        except (TypeError, ValueError):
            return False
    return False


def matched_requirements(
    entry: LexiconEntry,
    requirements: Iterable[Requirement],
) -> tuple[RequirementType, ...]:
    return tuple(req.type for req in requirements if requirement_matches(entry, req))


def requirements_hash(requirements: Iterable[Requirement]) -> str:
    canonical = "|".join(
        sorted(f"{req.type}:{str(req.value).lower()}" for req in requirements)
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def word_cache_key(theme: str, normalized: str) -> str:
    return f"wr:word:{theme}:{normalized}"


def validation_cache_key(theme: str, normalized: str, requirements: Iterable[Requirement]) -> str:
    return f"wr:validation:{theme}:{normalized}:{requirements_hash(requirements)}"


def _entry_to_cache(entry: LexiconEntry | None) -> dict[str, Any]:
    if entry is None:
        return {"exists": False}
    return {
        "exists": True,
        "word": entry.word,
        "length": entry.length,
        "firstLetter": entry.first_letter,
        "lastLetter": entry.last_letter,
    }


def _entry_from_cache(theme: str, normalized: str, payload: dict[str, Any]) -> LexiconEntry | None:
    if not payload.get("exists"):
        return None
    try:
        return LexiconEntry(
            word=str(payload.get("word") or normalized),
            theme=theme,
            normalized=normalized,
            length=int(payload["length"]),
            first_letter=str(payload["firstLetter"]),
            last_letter=str(payload["lastLetter"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


class ValidationCache:
    """Read-through tiers in front of the lexicon.

    Word tier: ``wr:word:<theme>:<word>`` holds the lexicon facts for a word.
    Validation tier: ``wr:validation:<theme>:<word>:<hash>`` holds whether the
    word satisfies at least one requirement of a requirement set, together
    with the word facts so a hit answers on its own. It is read first.
    Entries are only ever expired by TTL.
    """

    def __init__(
        self,
        lexicon: LexiconSource,
        cache: CacheBackend | None = None,
        *,
        word_ttl_seconds: int = 7200,
        positive_ttl_seconds: int = 3600,
        negative_ttl_seconds: int = 1800,
    ) -> None:
        self.lexicon = lexicon
        self.cache = cache
        self.word_ttl_seconds = word_ttl_seconds
        self.positive_ttl_seconds = positive_ttl_seconds
        self.negative_ttl_seconds = negative_ttl_seconds
        self.stats: dict[str, int] = {"wordHits": 0, "validationHits": 0, "misses": 0, "errors": 0}

    async def check(
        self,
        theme: str,
        normalized: str,
        requirements: Iterable[Requirement],
    ) -> WordCheck:
        requirements = tuple(requirements)
        try:
            return await self._check(theme, normalized, requirements)
        except ValidationBackendUnavailable:
            raise
        except Exception as exc:
            self.stats["errors"] += 1
            logger.exception("Validation backend failed for theme=%s word=%s", theme, normalized)
            raise ValidationBackendUnavailable() from exc

    async def _check(
        self,
        theme: str,
        normalized: str,
        requirements: tuple[Requirement, ...],
    ) -> WordCheck:
        word_key = word_cache_key(theme, normalized)
        validation_key = validation_cache_key(theme, normalized, requirements)

        if self.cache is not None:
            cached_result = await self.cache.get_json(validation_key)
            if isinstance(cached_result, dict) and "satisfies" in cached_result:
                self.stats["validationHits"] += 1
                entry = _entry_from_cache(theme, normalized, cached_result)
                return WordCheck(entry, bool(entry and cached_result["satisfies"]))

            cached_word = await self.cache.get_json(word_key)
            if isinstance(cached_word, dict):
                self.stats["wordHits"] += 1
                entry = _entry_from_cache(theme, normalized, cached_word)
                satisfies = bool(entry and matched_requirements(entry, requirements))
                await self._store_validation(validation_key, entry, satisfies)
                return WordCheck(entry, satisfies)

        self.stats["misses"] += 1
        entry = await self.lexicon.lookup(theme, normalized)
        satisfies = bool(entry and matched_requirements(entry, requirements))

        if self.cache is not None:
            await self.cache.set_json(word_key, _entry_to_cache(entry), self.word_ttl_seconds)
            await self._store_validation(validation_key, entry, satisfies)

        return WordCheck(entry, satisfies)

    async def _store_validation(
        self,
        validation_key: str,
        entry: LexiconEntry | None,
        satisfies: bool,
    ) -> None:
        if self.cache is None:
            return
        await self.cache.set_json(
            validation_key,
            {**_entry_to_cache(entry), "satisfies": satisfies},
            self.positive_ttl_seconds if satisfies else self.negative_ttl_seconds,
        )
