"""Field cursor: the scanning primitive behind the line grammar."""


def find(start: int, text: str, pattern: str) -> tuple[str, int] | None:
    """Return (text[start:match], match) for the first *pattern* at or after *start*.

    The returned offset points at the delimiter, not past it, so callers skip
    delimiters of known width themselves. Returns None when there is no match.
    """
    pos = text.find(pattern, start)
    if pos == -1:
        return None
    return text[start:pos], pos
