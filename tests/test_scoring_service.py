from services.scoring_service import aggregate_scores, rank_options


def _pairs(ranking):
    return [(r.option, r.score) for r in ranking]


def test_sum_of_scores_ranked_descending():
    options = ["pizza", "sushi"]
    votes = [{"pizza": 5, "sushi": 2}, {"pizza": 1, "sushi": 5}]

    assert aggregate_scores(options, votes) == {"pizza": 6, "sushi": 7}
    assert _pairs(rank_options(options, votes)) == [("sushi", 7), ("pizza", 6)]


def test_tie_keeps_insertion_order():
    options = ["a", "b"]
    votes = [{"a": 1, "b": 2}, {"a": 2, "b": 1}]

    assert _pairs(rank_options(options, votes)) == [("a", 3), ("b", 3)]


def test_tie_break_ignores_vote_key_order():
    options = ["b", "a", "c"]
    votes = [{"c": 4, "a": 4, "b": 4}]

    assert _pairs(rank_options(options, votes)) == [("b", 4), ("a", 4), ("c", 4)]


def test_missing_options_count_as_zero():
    options = ["early", "late"]
    # 第一份投票在 "late" 加入之前提交
    votes = [{"early": 3}, {"early": 1, "late": 5}]

    assert _pairs(rank_options(options, votes)) == [("late", 5), ("early", 4)]


def test_no_votes_gives_all_zero_in_insertion_order():
    assert _pairs(rank_options(["x", "y", "z"], [])) == [("x", 0), ("y", 0), ("z", 0)]


def test_no_options_gives_empty_ranking():
    assert rank_options([], [{"ghost": 3}]) == []


def test_ranking_is_deterministic():
    options = ["a", "b", "c", "d"]
    votes = [{"a": 2, "c": 5}, {"b": 7}, {"d": 2, "a": 5}, {}]

    first = rank_options(options, votes)
    for _ in range(5):
        assert rank_options(options, votes) == first
