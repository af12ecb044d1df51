"""Track title and artist normalization for grouping and matching.

Provides the normalization used by the dedup key, the word-level similarity
used when matching enhancement candidates, and artist-credit splitting for
songs stored with a single artist string.
"""

# Characters dropped before comparing titles/artists in dedup keys
_KEY_PUNCTUATION = str.maketrans("", "", "'\"-_.,!?")


def normalize_key_text(text: str) -> str:
    """Normalize a title or artist for dedup keys.

    Lowercases, strips ' " - _ . , ! ?, maps "&" to "and" and collapses
    whitespace. These exact rules decide which results merge, so keep them
    stable: "AC/DC" stays "ac/dc", "Guns N' Roses" becomes "guns n roses".
    """
    normalized = text.lower().translate(_KEY_PUNCTUATION).replace("&", "and")
    return " ".join(normalized.split())


def word_similarity(a: str, b: str) -> int:
    """Jaccard similarity of normalized words, as an integer 0-100."""
    a = normalize_key_text(a)
    b = normalize_key_text(b)
    if a == b:
        return 100

    words_a = a.split()
    words_b = b.split()
    if not words_a or not words_b:
        return 0

    set_b = set(words_b)
    intersection = sum(1 for word in words_a if word in set_b)
    union = len(words_a) + len(words_b) - intersection
    if union <= 0:
        return 100
    return (intersection * 100) // union


def split_artist_credit(artist: str) -> list[str]:
    """Split a stored artist credit ("A, B, C") back into individual names.

    Only commas separate credits: "Simon & Garfunkel" is one artist on every
    platform, so ampersands and "and" are left alone.
    """
    return [part.strip() for part in (artist or "").split(",") if part.strip()]


def join_artist_credit(artists: list[str]) -> str:
    """Inverse of split_artist_credit."""
    return ", ".join(a.strip() for a in artists if a and a.strip())
