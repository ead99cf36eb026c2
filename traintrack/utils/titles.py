"""Title tokenising helpers shared by the submission matcher and the CLI."""

from __future__ import annotations

from collections.abc import Sequence
import re
from typing import List

DEFAULT_DELIMITERS = r"[\s_\-/|]+"


def split_words(value: str | Sequence[str] | None, *, delimiters: str = DEFAULT_DELIMITERS) -> List[str]:
    """Split a title into lower-cased tokens.

    Works for strings (splitting on the provided delimiters) or sequences (recursively splits
    each entry). Empty tokens are dropped, so separators such as ``" | "`` never produce a
    token shared by unrelated titles.
    """

    if not value:
        return []
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        tokens: List[str] = []
        for item in value:
            tokens.extend(split_words(item, delimiters=delimiters))
        return tokens
    text = str(value).lower()
    return [token for token in re.split(delimiters, text) if token]


def title_word_set(title: str | None) -> set[str]:
    return set(split_words(title))


def matchable_title_words(title: str) -> set[str]:
    """Tokens of an assignment title, plus each adjacent pair glued together.

    Trainees often write "alarmclock" for an assignment called "Alarm clock", so
    the glued pairs let those titles still overlap.
    """

    words = split_words(title.strip().rstrip("."))
    tokens = set(words)
    for first, second in zip(words, words[1:]):
        tokens.add(f"{first}{second}")
    return tokens
