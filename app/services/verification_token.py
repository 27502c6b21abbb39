"""
Verification token generation and proof-artifact naming.

Artifact formats are fixed because tenants deploy them to their own web
servers and DNS zones:

    file name   company-verification-<token>.txt   (content: <token>)
    DNS name    _cmms-verification.<domain>
    TXT value   cmms-verify=<token>
"""
import hashlib
import re
import secrets
import time
from typing import Optional
from urllib.parse import urlsplit

from app.config import settings

TOKEN_LENGTH = 32
FILE_NAME_PREFIX = "company-verification-"
FILE_NAME_SUFFIX = ".txt"
DNS_RECORD_LABEL = "_cmms-verification"
TXT_VALUE_PREFIX = "cmms-verify="

_HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9-]{2,63}$"
)

# Free / personal mailbox providers: nobody can prove control of these.
PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "live.com",
    "msn.com", "aol.com", "icloud.com", "me.com", "mac.com",
    "protonmail.com", "proton.me", "zoho.com", "yandex.com", "mail.com",
    "gmx.com", "gmx.net", "inbox.com", "fastmail.com", "tutanota.com",
    "qq.com", "163.com", "126.com", "sina.com", "rediffmail.com", "mail.ru",
})


def generate_verification_token(domain: str) -> str:
    """
    Unpredictable 32-hex-char token bound to ``domain``.

    Two calls for the same domain never return the same value.
    """
    nonce = secrets.token_hex(16)
    raw = f"{domain}-{time.time_ns()}-{nonce}"
    return hashlib.sha256(raw.encode()).hexdigest()[:TOKEN_LENGTH]


def verification_file_name(token: str) -> str:
    return f"{FILE_NAME_PREFIX}{token}{FILE_NAME_SUFFIX}"


def dns_record_name(domain: str) -> str:
    return f"{DNS_RECORD_LABEL}.{domain}"


def txt_record_value(token: str) -> str:
    return f"{TXT_VALUE_PREFIX}{token}"


def cname_target(token: str) -> str:
    return f"{token}.{settings.DOMAIN_VERIFICATION_CNAME_TARGET}"


def normalize_domain(value: Optional[str]) -> str:
    """
    Reduce a claimed domain or website URL to a bare host name.

    ``"https://www.AcmeCorp.com/about"`` -> ``"acmecorp.com"``.
    Returns an empty string when nothing usable is left.
    """
    if not value:
        return ""
    candidate = value.strip().lower()
    if not candidate:
        return ""
    if "://" not in candidate:
        candidate = f"//{candidate}"
    host = urlsplit(candidate).hostname or ""
    host = host.rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def is_valid_domain(domain: str) -> bool:
    return bool(_HOSTNAME_PATTERN.match(domain or ""))


def is_personal_email_domain(domain: str) -> bool:
    return (domain or "").lower() in PERSONAL_EMAIL_DOMAINS
