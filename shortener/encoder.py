"""Deterministic short-code encoder.

An allocated counter value is mixed with a small salt and rendered in base 62::

    combined = id * 1000 + salt
    code     = base62(combined).rjust(7, "0")

The salt only makes consecutive codes harder to guess. Uniqueness comes from the
counter value alone: for a fixed multiplier, distinct ``id`` values can never
produce the same ``combined`` number. Padding uses the zero digit, so a padded
code never collides with an unpadded one (an unpadded rendering never starts
with ``"0"``) and codes stay URL-safe.

Example:
    >>> encode(0, 0)
    '0000000'
    >>> encode(56800235584, 7)
    'G8000007'
"""

__all__ = [
    "BASE62_ALPHABET",
    "SALT_MULTIPLIER",
    "MIN_CODE_LENGTH",
    "MAX_CODE_LENGTH",
    "base62_encode",
    "base62_decode",
    "encode",
    "decode_short_code",
    "is_well_formed",
]

BASE62_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
SALT_MULTIPLIER = 1000
MIN_CODE_LENGTH = 7
MAX_CODE_LENGTH = 16

_BASE = len(BASE62_ALPHABET)
_INDEX = {char: position for position, char in enumerate(BASE62_ALPHABET)}


def base62_encode(number: int) -> str:
    """Encode a non-negative integer, most significant digit first.

    Example:
        >>> base62_encode(62)
        '10'
    """
    if number < 0:
        raise ValueError("Number must be non-negative")

    if number == 0:
        return BASE62_ALPHABET[0]

    result = []
    while number > 0:
        number, remainder = divmod(number, _BASE)
        result.append(BASE62_ALPHABET[remainder])

    return "".join(result[::-1])


def base62_decode(value: str) -> int:
    if not value:
        raise ValueError("Value must be a non-empty string")

    number = 0
    for char in value:
        try:
            number = number * _BASE + _INDEX[char]
        except KeyError:
            raise ValueError(f"Invalid base62 character: {char!r}") from None
    return number


def encode(
    id: int,
    salt: int,
    multiplier: int = SALT_MULTIPLIER,
    min_length: int = MIN_CODE_LENGTH,
) -> str:
    """Render an allocated id and a salt as a short code.

    Args:
        id: Value issued by the allocator (non-negative).
        salt: Value in ``[0, multiplier)``.
        multiplier: Room reserved for the salt below the id.
        min_length: Codes shorter than this are left-padded with ``"0"``.

    Returns:
        str: The short code.
    """
    if id < 0:
        raise ValueError("id must be non-negative")
    if not 0 <= salt < multiplier:
        raise ValueError(f"salt must be in [0, {multiplier})")

    combined = id * multiplier + salt
    return base62_encode(combined).rjust(min_length, BASE62_ALPHABET[0])


def decode_short_code(short_code: str, multiplier: int = SALT_MULTIPLIER) -> tuple[int, int]:
    """Recover ``(id, salt)`` from a code produced by :func:`encode`."""
    return divmod(base62_decode(short_code), multiplier)


def is_well_formed(short_code: str, max_length: int = MAX_CODE_LENGTH) -> bool:
    """True if ``short_code`` could have been produced by :func:`encode`."""
    return 0 < len(short_code) <= max_length and all(char in _INDEX for char in short_code)
