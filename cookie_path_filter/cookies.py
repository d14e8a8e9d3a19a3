"""
Set-Cookie header parsing and serialization.

Parsing follows RFC 6265 the way common HTTP stacks do it: a header value
whose name/value pair is malformed is skipped entirely, attributes that
cannot be understood are kept aside and written back verbatim.
"""

import logging
import re
import string
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional

logger = logging.getLogger("uvicorn.error")

# RFC 7230 token characters
TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")

MAX_AGE_RE = re.compile(r"[+-]?\d+")


def is_token(text: str) -> bool:
    return bool(text) and all(c in TOKEN_CHARS for c in text)


def _valid_value_char(c: str) -> bool:
    return " " <= c < "\x7f" and c not in '";\\'


def _valid_path_char(c: str) -> bool:
    return " " <= c < "\x7f" and c != ";"


def parse_cookie_value(raw: str, allow_quotes: bool) -> Optional[tuple]:
    """Return ``(value, quoted)`` or None when the value holds invalid bytes."""
    quoted = False
    if allow_quotes and len(raw) > 1 and raw[0] == '"' and raw[-1] == '"':
        raw = raw[1:-1]
        quoted = True
    if not all(_valid_value_char(c) for c in raw):
        return None
    return raw, quoted


def _is_path_attribute(attribute: str) -> bool:
    return attribute.partition("=")[0].strip().lower() == "path"


def _is_http_date(value: str) -> bool:
    try:
        return parsedate_to_datetime(value) is not None
    except (TypeError, ValueError):
        return False


@dataclass
class Cookie:
    name: str
    value: str = ""
    quoted: bool = False
    path: str = ""
    domain: str = ""
    # Kept as received so the attribute is written back unchanged
    expires: str = ""
    # None: unset, <= 0: expire immediately
    max_age: Optional[int] = None
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None
    partitioned: bool = False
    unparsed: List[str] = field(default_factory=list)

    def to_header(self) -> str:
        """Serialize the cookie as a Set-Cookie header value."""
        value = self.value
        # Quotes only come back if they were received
        if self.quoted:
            value = f'"{value}"'
        parts = [f"{self.name}={value}"]

        unparsed = self.unparsed
        if self.path:
            path = "".join(c for c in self.path if _valid_path_char(c))
            if path != self.path:
                logger.warning(
                    f"[CookiePath] Dropped invalid characters from path {self.path!r} "
                    f"of cookie {self.name}"
                )
            if path:
                parts.append(f"Path={path}")
                # A Path kept aside as unparsed would override the new one
                unparsed = [a for a in unparsed if not _is_path_attribute(a)]
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.expires:
            parts.append(f"Expires={self.expires}")
        if self.max_age is not None:
            parts.append(f"Max-Age={max(self.max_age, 0)}")
        if self.http_only:
            parts.append("HttpOnly")
        if self.secure:
            parts.append("Secure")
        if self.same_site is not None:
            parts.append(f"SameSite={self.same_site}" if self.same_site else "SameSite")
        if self.partitioned:
            parts.append("Partitioned")
        parts.extend(unparsed)
        return "; ".join(parts)


def _apply_attribute(cookie: Cookie, attr: str, val: str) -> bool:
    """Store a known attribute on the cookie. Returns False if it is not understood."""
    key = attr.lower()
    if key == "path":
        cookie.path = val
    elif key == "domain":
        cookie.domain = val
    elif key == "expires":
        if not _is_http_date(val):
            return False
        cookie.expires = val
    elif key == "max-age":
        if not MAX_AGE_RE.fullmatch(val):
            return False
        seconds = int(val)
        if seconds != 0 and val[0] == "0":
            return False
        cookie.max_age = seconds if seconds > 0 else 0
    elif key == "secure":
        cookie.secure = True
    elif key == "httponly":
        cookie.http_only = True
    elif key == "samesite":
        cookie.same_site = val
    elif key == "partitioned":
        cookie.partitioned = True
    else:
        return False
    return True


def parse_set_cookie(line: str) -> Optional[Cookie]:
    """
    Parse a single Set-Cookie header value.

    Returns None if the name/value pair is malformed: no ``=``, a name that is
    not a token, or a value with characters not allowed in a cookie.
    """
    parts = line.strip().split(";")
    name, sep, raw_value = parts[0].partition("=")
    name = name.strip()
    if not sep or not is_token(name):
        return None
    parsed = parse_cookie_value(raw_value.strip(), allow_quotes=True)
    if parsed is None:
        return None

    value, quoted = parsed
    cookie = Cookie(name=name, value=value, quoted=quoted)
    for part in parts[1:]:
        part = part.strip()
        if not part:
            continue
        attr, _, raw_val = part.partition("=")
        attr = attr.strip()
        attr_value = parse_cookie_value(raw_val.strip(), allow_quotes=False)
        if (
            not attr.isascii()
            or attr_value is None
            or not _apply_attribute(cookie, attr, attr_value[0])
        ):
            cookie.unparsed.append(part)
    return cookie


def read_set_cookies(lines: Iterable[str]) -> List[Cookie]:
    """Parse every header value, skipping the ones that are not valid cookies."""
    cookies = []
    for line in lines:
        cookie = parse_set_cookie(line)
        if cookie is None:
            logger.debug(f"[CookiePath] Dropping malformed Set-Cookie value: {line!r}")
            continue
        cookies.append(cookie)
    return cookies
