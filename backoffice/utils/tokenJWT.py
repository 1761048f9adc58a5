# backoffice/utils/tokenJWT.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from backoffice.config import settings
from backoffice.permissions import Role, Capability, parse_role, has_capability

# Authorization scheme; tokens are issued by the external auth service
bearer_scheme = HTTPBearer()


# Identity of the caller as asserted by the token
@dataclass(frozen=True)
class Caller:
    id: str
    role: Role


# Generate a new JWT access token (used by the auth service and by tests)
def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

# Resolve the caller from the bearer token
def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Caller:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        # Ensure identity is present in the token payload
        if subject is None:
            raise credentials_exception
        role = parse_role(payload.get("role"))
    except (JWTError, ValueError):
        raise credentials_exception

    return Caller(id=str(subject), role=role)

# Dependency factory: the single authorization gate for every route
def require(capability: Capability):
    def _checker(caller: Caller = Depends(get_current_caller)) -> Caller:
        if not has_capability(caller.role, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden"
            )
        return caller
    return _checker
