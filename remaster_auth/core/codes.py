"""One-time code generation.

Codes prove control of an email address, so they must come from the OS
CSPRNG (``secrets``), never from ``random``.
"""

import secrets
import string
from typing import Literal

from remaster_auth.core.config import settings

CodeCharset = Literal["numeric", "alphanumeric"]

_ALPHABETS: dict[str, str] = {
    "numeric": string.digits,
    # Uppercase only: codes are typed by hand from an email
    "alphanumeric": string.ascii_uppercase + string.digits,
}

_MIN_LENGTH = 4
_MAX_LENGTH = 32


def generate_code(
    length: int | None = None,
    charset: CodeCharset | None = None,
) -> str:
    """Generate a random one-time code.

    Args:
        length: Number of characters. Defaults to ONE_TIME_CODE_LENGTH.
        charset: "numeric" or "alphanumeric". Defaults to ONE_TIME_CODE_CHARSET.

    Returns:
        Code string of exactly ``length`` characters.

    Raises:
        ValueError: If length is out of bounds or charset is unknown.
    """
    length = settings.one_time_code_length if length is None else length
    charset = charset or settings.one_time_code_charset

    if not _MIN_LENGTH <= length <= _MAX_LENGTH:
        msg = f"Code length must be between {_MIN_LENGTH} and {_MAX_LENGTH}"
        raise ValueError(msg)

    alphabet = _ALPHABETS.get(charset)
    if alphabet is None:
        msg = f"Unknown code charset: {charset}"
        raise ValueError(msg)

    return "".join(secrets.choice(alphabet) for _ in range(length))
