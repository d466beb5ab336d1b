import pytest

from spamzero.api.stats import is_spam, summarize_history


def test_empty_history_is_all_zero():
    stats = summarize_history([])

    assert stats.model_dump(by_alias=True) == {
        "spam": 0,
        "ham": 0,
        "spamPercent": 0,
        "hamPercent": 0,
    }


def test_case_insensitive_spam_and_everything_else_is_ham():
    stats = summarize_history(
        [{"prediction": "Spam"}, {"prediction": "ham"}, {"prediction": "ham"}]
    )

    assert stats.spam == 1
    assert stats.ham == 2
    assert stats.spam_percent == pytest.approx(33.333, abs=1e-3)
    assert stats.ham_percent == pytest.approx(66.667, abs=1e-3)


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        ({"prediction": "SPAM"}, True),
        ({"prediction": "spam"}, True),
        ({"prediction": "not spam"}, False),
        ({"prediction": None}, False),
        ({"prediction": 1}, False),
        ({}, False),
    ],
)
def test_is_spam(record, expected):
    assert is_spam(record) is expected


def test_result_depends_only_on_input():
    records = [{"prediction": "spam"}, {}]

    first = summarize_history(records)
    records.append({"prediction": "spam"})
    second = summarize_history(records)

    assert (first.spam, first.ham) == (1, 1)
    assert (second.spam, second.ham) == (2, 1)
    assert summarize_history(iter(records)) == second
