from passlib.context import CryptContext

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX = 72


def hash_password(password: str) -> str:
    return _pwd_context.hash(password[:_BCRYPT_MAX])


def verify_password(password: str, password_hash: str) -> bool:
    return _pwd_context.verify(password[:_BCRYPT_MAX], password_hash)
