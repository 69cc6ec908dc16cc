import hmac


def verify_admin_token(provided: str | None, expected: str) -> bool:
    """Constant-time compare; admin endpoints are closed when no token is configured."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
