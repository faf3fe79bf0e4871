import secrets

from passlib.context import CryptContext

# pbkdf2 stores a fresh random salt inside every hash
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token() -> str:
    """Access token for the routes mounted at /api."""
    return secrets.token_hex(10)
