# sellfast/moderation.py
"""
Phone-number filter for chat text.

The patterns are loose: any run of four or more digits (order numbers, long
prices) also matches.
"""
import re

MESSAGE_BLOCK_REASON = "Mobile number sharing is not allowed"
CHAT_BLOCK_REASON = "Mobile number sharing detected"

# \d and \b are ASCII-only (re.ASCII); separators use the web client's wider
# whitespace set, which includes NBSP and the Unicode space separators
_SEP = r"[-.\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]"

PHONE_PATTERNS = (
    re.compile(r"\b\d{10}\b", re.ASCII),                                          # 10 digits
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b", re.ASCII),                       # 555-123-4567
    re.compile(rf"\b\+?\d{{1,3}}{_SEP}?\(?\d{{1,4}}\)?{_SEP}?\d{{1,4}}{_SEP}?\d{{1,9}}\b", re.ASCII),  # international
    re.compile(rf"\b\d{{4}}{_SEP}?\d{{3}}{_SEP}?\d{{3}}\b", re.ASCII),             # 4-3-3
)


def find_phone_number(text: str | None) -> str | None:
    """Return the first matched fragment, or None when the text is clean."""
    if not text:
        return None
    for pattern in PHONE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(0)
    return None


def contains_phone_number(text: str | None) -> bool:
    return find_phone_number(text) is not None
