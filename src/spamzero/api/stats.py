from collections.abc import Iterable, Mapping
from typing import Any, Final

from spamzero.api.schemas import HistoryStats

SPAM_LABEL: Final[str] = "spam"


def is_spam(record: Mapping[str, Any]) -> bool:
    """Case-insensitive spam check; anything else (or nothing) counts as ham."""
    prediction = record.get("prediction")
    return isinstance(prediction, str) and prediction.lower() == SPAM_LABEL


def summarize_history(records: Iterable[Mapping[str, Any]]) -> HistoryStats:
    """
    Compute spam/ham counts and percentage shares over a history snapshot.

    This is a pure function of its input: nothing is cached or persisted, so
    the result only reflects the records passed in. An empty snapshot yields
    zero for every figure instead of dividing by zero.
    """
    total = 0
    spam = 0

    for record in records:
        total += 1
        if is_spam(record):
            spam += 1

    if total == 0:
        return HistoryStats(spam=0, ham=0, spam_percent=0, ham_percent=0)

    ham = total - spam

    return HistoryStats(
        spam=spam,
        ham=ham,
        spam_percent=spam / total * 100,
        ham_percent=ham / total * 100,
    )
