import secrets
import string

RESERVATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
RESERVATION_CODE_LENGTH = 6


def generate_reservation_code(length: int = RESERVATION_CODE_LENGTH) -> str:
    """Return a random guest-facing code; uniqueness is enforced by the store."""
    return "".join(secrets.choice(RESERVATION_CODE_ALPHABET) for _ in range(length))
