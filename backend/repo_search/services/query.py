from typing import Optional

# A normalized, non-empty search term; EMPTY stands for "no query".
Query = str
EMPTY = None


def normalize(raw: Optional[str]) -> Optional[Query]:
    """Trim raw input into a query, or EMPTY when nothing is left."""
    if raw is EMPTY:
        return EMPTY
    text = raw.strip()
    return text or EMPTY
