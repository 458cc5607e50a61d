from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Claims carried by an access token."""
    sub: str
    exp: int
    email: Optional[str] = None
    type: Optional[str] = "access"
