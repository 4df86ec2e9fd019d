import random
from datetime import datetime, timezone
from typing import Optional

RANDOM_CEILING = 1_000_000_000

_rng = random.SystemRandom()


def generate_stored_name(
    original_name: str,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Build `<epoch-millis>-<random-int>-<original_name>`.

    Timestamp plus a random segment keeps concurrent uploads apart without
    a shared counter. The original name is passed through untouched;
    callers that write to disk sanitize it first.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    suffix = (rng or _rng).randint(0, RANDOM_CEILING)
    return f"{millis}-{suffix}-{original_name}"
