# sellfast/utils.py
import json
import re
import unicodedata

from passlib.context import CryptContext

# Support multiple schemes so verify can handle legacy hashes
# Default to bcrypt_sha256 (automatically avoids the 72-byte limit)
pwd_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt", "pbkdf2_sha256"],
    default="bcrypt_sha256",
    deprecated="auto",
)

BCRYPT_MAX_BYTES = 72
MAX_FORM_PASSWORD_CHARS = 128
MIN_PASSWORD_CHARS = 6

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]{3,20}$")


def _truncate_for_bcrypt(password: str) -> str:
    if password is None:
        return ""
    b = password.encode("utf-8")
    if len(b) <= BCRYPT_MAX_BYTES:
        return password
    return b[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
    return pwd_context.hash((password or "")[:MAX_FORM_PASSWORD_CHARS])


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Verification supports bcrypt_sha256, bcrypt and pbkdf2_sha256.
    Accounts without a stored hash never verify.
    """
    if not hashed:
        return False
    plain = (plain or "")[:MAX_FORM_PASSWORD_CHARS]
    try:
        if pwd_context.verify(plain, hashed):
            return True
        # Second attempt with truncation in case the hash is classic bcrypt
        return pwd_context.verify(_truncate_for_bcrypt(plain), hashed)
    except (ValueError, TypeError):
        return False


def slugify(value: str) -> str:
    s = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    s = re.sub(r"[^a-zA-Z0-9]+", "-", s).strip("-").lower()
    return s or "brand"


def parse_options(raw) -> list | None:
    """
    Specification options arrive as a list, a JSON string, or "a, b, c".
    """
    if raw is None:
        return None
    if isinstance(raw, list):
        return [str(o) for o in raw]
    text = str(raw).strip()
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return [o.strip() for o in text.split(",") if o.strip()]
    if isinstance(parsed, list):
        return [str(o) for o in parsed]
    return [str(parsed)]
