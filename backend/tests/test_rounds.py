import random

from wordrush.runtime_constants import THEMES
from wordrush.runtime_ranking import build_final_ranking, top_ranking
from wordrush.runtime_rounds import build_requirements, generate_round, split_points
from wordrush.runtime_types import PlayerConnection


def test_split_points_always_totals_one_hundred():
    rng = random.Random(7)
    for _ in range(500):
        shares = split_points(rng)
        assert sum(shares) == 100
        assert all(share >= 10 for share in shares)


def test_generated_round_has_one_requirement_of_each_type():
    rng = random.Random(42)
    for _ in range(200):
        round_ = generate_round(['Hewan', 'Buah'], 60_000, rng)
        assert round_.theme in {'Hewan', 'Buah'}
        assert {req.type for req in round_.requirements} == {'prefix', 'suffix', 'length'}
        assert sum(req.points for req in round_.requirements) == 100
        points = [req.points for req in round_.requirements]
        assert points == sorted(points, reverse=True)
        length = next(req for req in round_.requirements if req.type == 'length')
        assert 3 <= length.value <= 10
        assert round_.duration_ms == 60_000
        assert round_.answers == []


def test_generate_round_falls_back_to_known_themes():
    round_ = generate_round([], 30_000, random.Random(1))
    assert round_.theme in THEMES


def test_requirements_carry_descriptions():
    requirements = build_requirements('S', 'A', 5, (30, 40, 30))
    descriptions = {req.type: req.description for req in requirements}
    assert descriptions == {
        'prefix': 'Starts with letter',
        'suffix': 'Ends with letter',
        'length': 'Letter count',
    }
    assert requirements[0].type == 'suffix'


def test_final_ranking_uses_sequential_ranks_for_ties():
    players = [
        PlayerConnection('a', 'Ana', score=40),
        PlayerConnection('b', 'Budi', score=90),
        PlayerConnection('c', 'Citra', score=40),
        PlayerConnection('d', 'Dewi', score=10),
    ]
    ranking = build_final_ranking(players)
    assert [entry.player_id for entry in ranking] == ['b', 'a', 'c', 'd']
    assert [entry.rank for entry in ranking] == [1, 2, 3, 4]
    assert [entry.player_id for entry in top_ranking(ranking)] == ['b', 'a', 'c']
