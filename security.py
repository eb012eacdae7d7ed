import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings


class TokenError(Exception):
    pass


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    if not settings.token_secret:
        raise RuntimeError("FINANCE_TOKEN_SECRET is not set")
    return URLSafeTimedSerializer(settings.token_secret, salt="access-token")


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"uid": user_id})


def verify_token(token: str) -> int:
    """Return the user id carried by ``token``.

    Raises ``TokenExpired`` once the token is older than the configured
    max age and ``TokenInvalid`` for anything that fails signature checks.
    """
    settings = get_settings()
    serializer = _serializer()
    try:
        data = serializer.loads(token, max_age=settings.token_max_age_days * 86400)
    except SignatureExpired as exc:
        raise TokenExpired("Token expired") from exc
    except BadSignature as exc:
        raise TokenInvalid("Invalid token") from exc

    user_id = data.get("uid") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        raise TokenInvalid("Invalid token")
    return user_id


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False
