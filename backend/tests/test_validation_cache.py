import asyncio

import pytest

from wordrush.errors import ValidationBackendUnavailable
from wordrush.runtime_rounds import build_requirements
from wordrush.runtime_types import Requirement
from wordrush.validation_cache import (
    ValidationCache,
    requirements_hash,
    validation_cache_key,
    word_cache_key,
)

REQUIREMENTS = build_requirements('S', 'A', 6, (30, 40, 30))


def test_requirement_hash_ignores_order():
    shuffled = (REQUIREMENTS[2], REQUIREMENTS[0], REQUIREMENTS[1])
    assert requirements_hash(REQUIREMENTS) == requirements_hash(shuffled)


def test_requirement_hash_ignores_points_but_not_values():
    repointed = tuple(Requirement(req.type, req.value, 100 - req.points) for req in REQUIREMENTS)
    assert requirements_hash(repointed) == requirements_hash(REQUIREMENTS)
    other = build_requirements('B', 'A', 6, (30, 40, 30))
    assert requirements_hash(other) != requirements_hash(REQUIREMENTS)


def test_miss_populates_both_tiers(lexicon, cache):
    validation = ValidationCache(lexicon, cache, word_ttl_seconds=7200, positive_ttl_seconds=3600)

    check = asyncio.run(validation.check('Hewan', 'singa', REQUIREMENTS))

    assert check.exists
    assert check.satisfies_any
    assert lexicon.lookups == 1
    word_key = word_cache_key('Hewan', 'singa')
    validation_key = validation_cache_key('Hewan', 'singa', REQUIREMENTS)
    assert cache.values[word_key]['length'] == 5
    assert cache.ttls[word_key] == 7200
    assert cache.values[validation_key]['satisfies'] is True
    assert cache.ttls[validation_key] == 3600


def test_word_tier_hit_skips_lexicon(lexicon, cache):
    validation = ValidationCache(lexicon, cache)

    async def scenario():
        await validation.check('Hewan', 'singa', REQUIREMENTS)
        other_round = build_requirements('B', 'X', 3, (50, 25, 25))
        return await validation.check('Hewan', 'singa', other_round)

    check = asyncio.run(scenario())

    assert lexicon.lookups == 1
    assert check.exists
    assert not check.satisfies_any
    assert validation.stats['wordHits'] == 1


def test_unknown_word_keeps_word_ttl_and_negative_validation_ttl(lexicon, cache):
    validation = ValidationCache(lexicon, cache, negative_ttl_seconds=1800)

    check = asyncio.run(validation.check('Hewan', 'mangga', REQUIREMENTS))

    assert not check.exists
    assert cache.values[word_cache_key('Hewan', 'mangga')] == {'exists': False}
    assert cache.ttls[word_cache_key('Hewan', 'mangga')] == 7200
    assert cache.ttls[validation_cache_key('Hewan', 'mangga', REQUIREMENTS)] == 1800


def test_works_without_cache_tier(lexicon):
    validation = ValidationCache(lexicon, None)
    check = asyncio.run(validation.check('Buah', 'salak', REQUIREMENTS))
    assert check.exists
    assert check.satisfies_any


def test_backend_failure_raises_validation_unavailable(lexicon, cache):
    lexicon.fail = True
    validation = ValidationCache(lexicon, cache)

    with pytest.raises(ValidationBackendUnavailable):
        asyncio.run(validation.check('Hewan', 'singa', REQUIREMENTS))
    assert validation.stats['errors'] == 1


def test_validation_tier_hit_answers_without_lexicon(lexicon, cache):
    validation = ValidationCache(lexicon, cache)

    async def scenario():
        await validation.check('Hewan', 'singa', REQUIREMENTS)
        cache.values.pop(word_cache_key('Hewan', 'singa'))
        return await validation.check('Hewan', 'singa', REQUIREMENTS)

    check = asyncio.run(scenario())

    assert lexicon.lookups == 1
    assert check.exists
    assert check.satisfies_any
    assert check.entry.length == 5
    assert validation.stats['validationHits'] == 1
    assert validation.stats['wordHits'] == 0
