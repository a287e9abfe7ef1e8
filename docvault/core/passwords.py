import bcrypt

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


def check_password_length(password: str) -> str:
    """bcrypt only reads the first 72 bytes; longer input is refused, not truncated."""
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return password


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    check_password_length(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or an over-long password.
        return False
