"""Alias generation from provider display names.

"John Doe" becomes "john_doe_" plus a short random suffix. The base
transformation is deterministic; only the suffix varies between calls, so
repeated calls produce fresh candidates for collision retries.
"""

import random
import re
import secrets
import string

# Maximum length of the normalized base before the suffix is appended
ALIAS_BASE_MAX_LENGTH = 20

_SUFFIX_LENGTH = 4
_FALLBACK_LENGTH = 6
_FALLBACK_PREFIX = "user_"

_BASE36 = string.digits + string.ascii_lowercase
_INVALID_CHARS = re.compile(r"[^a-z0-9]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def normalize_alias_base(display_name: str) -> str:
    """Normalize a display name into an alias base.

    Lowercases, maps every character outside [a-z0-9] to "_", collapses
    runs of "_", trims leading/trailing "_", then truncates.

    Args:
        display_name: Name as supplied by the provider.

    Returns:
        Normalized base, possibly empty.
    """
    base = _INVALID_CHARS.sub("_", display_name.lower())
    base = _UNDERSCORE_RUNS.sub("_", base).strip("_")
    return base[:ALIAS_BASE_MAX_LENGTH]


class AliasGenerator:
    """Produces alias candidates with randomized disambiguation.

    Args:
        rng: Source of randomness. Defaults to a CSPRNG-backed
            SystemRandom; tests pass a seeded random.Random or a stub
            exposing choice().
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or secrets.SystemRandom()

    def _random_chars(self, length: int) -> str:
        return "".join(self._rng.choice(_BASE36) for _ in range(length))

    def generate(self, display_name: str | None = None) -> str:
        """Generate an alias candidate.

        Args:
            display_name: Optional display name to seed the alias.

        Returns:
            "{base}_{suffix}", or "user_{random}" when no usable name exists.
        """
        base = normalize_alias_base(display_name) if display_name else ""
        if not base:
            return f"{_FALLBACK_PREFIX}{self._random_chars(_FALLBACK_LENGTH)}"
        return f"{base}_{self._random_chars(_SUFFIX_LENGTH)}"
