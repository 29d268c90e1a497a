import hmac

from app.core.errors import Unauthorized


def verify_operator_secret(presented: str | None, expected: str) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_operator(presented: str | None, expected: str) -> None:
    """Single gate for operator-only operations; swap this to change the auth scheme."""
    if not verify_operator_secret(presented, expected):
        raise Unauthorized()
