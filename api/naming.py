"""Project title heuristic."""

import re

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "from", "up", "about", "into", "through", "during", "before",
        "after", "above", "below", "between", "i", "want", "build", "create", "make",
        "can", "you", "please", "help", "me",
    }
)  # fmt: skip

DEFAULT_TITLE = "New Project"
MAX_TITLE_WORDS = 3
MAX_TITLE_LENGTH = 30
MIN_WORD_LENGTH = 3

# ASCII word characters only, accented letters count as punctuation
_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)


def generate_project_title(user_input: str) -> str:
    """Derive a short display name from the first request of a project.

    Keeps the first three words that are longer than two characters and not
    stop words, capitalizes each, and truncates to 30 characters plus "...".

    >>> generate_project_title("I want to build a todo list app")
    'Todo List App'
    """
    clean_input = _PUNCTUATION.sub(" ", user_input.lower().strip())
    words = [
        word
        for word in clean_input.split()
        if len(word) >= MIN_WORD_LENGTH and word not in STOP_WORDS
    ][:MAX_TITLE_WORDS]

    if not words:
        return DEFAULT_TITLE

    title = " ".join(word[0].upper() + word[1:] for word in words)
    if len(title) > MAX_TITLE_LENGTH:
        return title[:MAX_TITLE_LENGTH] + "..."
    return title
