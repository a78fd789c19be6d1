import secrets
import string

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits

USER_TOKEN_LENGTH = 18
SHARE_TOKEN_LENGTH = 12


def mint_token(length: int = USER_TOKEN_LENGTH, alphabet: str = ALPHABET) -> str:
    """Draw `length` characters uniformly from `alphabet` using the OS random source."""
    if length <= 0:
        raise ValueError("token length must be positive")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def is_token(value: str, alphabet: str = ALPHABET) -> bool:
    """Check that a string could have been produced by mint_token."""
    return bool(value) and all(ch in alphabet for ch in value)
