"""Password hashing with Argon2id.

Cost parameters are fixed so every stored hash has the same resistance to
offline brute force. The salt is generated per call and embedded in the
encoded record; callers never handle salts.
"""

import contextlib

from argon2 import PasswordHasher, Type
from argon2.exceptions import VerificationError, VerifyMismatchError

# Argon2id cost parameters: 64 MiB memory, 3 iterations, 4 lanes
ARGON2_MEMORY_COST_KIB = 65536
ARGON2_TIME_COST = 3
ARGON2_PARALLELISM = 4

_hasher = PasswordHasher(
    time_cost=ARGON2_TIME_COST,
    memory_cost=ARGON2_MEMORY_COST_KIB,
    parallelism=ARGON2_PARALLELISM,
    type=Type.ID,
)


def hash_password(password: str) -> str:
    """Hash a password.

    Args:
        password: Plain-text password.

    Returns:
        Encoded Argon2id record ($argon2id$v=19$m=65536,t=3,p=4$...).
    """
    return _hasher.hash(password)


def verify_password(password: str | None, hash_record: str | None) -> bool:
    """Verify a password against an encoded hash record.

    Never raises: a wrong password, a missing record, or a record in some
    other format all return False. A record that cannot be decoded costs
    a full verification against DUMMY_HASH, so it fails no faster than a
    wrong password.

    Args:
        password: Plain-text password supplied by the user.
        hash_record: Stored Argon2 record.

    Returns:
        True only if the password matches the record.
    """
    if password is None or not hash_record:
        return False
    try:
        return _hasher.verify(hash_record, password)
    except VerifyMismatchError:
        return False
    except (VerificationError, ValueError):
        # Decoding failures and InvalidHashError (a ValueError) skip hashing
        burn_dummy_verification(password)
        return False
    except TypeError:
        return False


# Hash evaluated once to keep timing consistent for missing users
DUMMY_HASH = hash_password("transcendence-dummy-password")


def burn_dummy_verification(password: str) -> None:
    """Run a full verification against DUMMY_HASH and discard the result.

    Security: called when the account or its hash is missing, or the
    stored record cannot be decoded, so the response time does not reveal
    which case occurred.
    """
    with contextlib.suppress(VerifyMismatchError):
        _hasher.verify(DUMMY_HASH, password)
