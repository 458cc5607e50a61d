import jwt
from datetime import datetime, timedelta, timezone
from app.core.config import settings

def generate_test_jwt(user_id=1, email="testuser@example.com", expires_in=timedelta(hours=1)):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": now + expires_in,
        "iat": now,
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token

def auth_header(user):
    """Bearer header for a DirectoryUser."""
    return {"Authorization": f"Bearer {generate_test_jwt(user.id, user.email)}"}
