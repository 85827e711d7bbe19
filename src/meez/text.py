"""
Meez - Text and identity utilities.

- preprocess_raw_text: whitespace normalization for pasted text
- normalize_url: canonical form of a recipe URL
- fingerprint: stable cache identity of an input
- detect_input_type: url vs raw text for a single free-form input box
- validate_recipe_text: cheap check before spending tokens
"""

import hashlib
import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from meez.models import InputKind, RawInput

_NEWLINES_RE = re.compile(r"\r\n|\r")
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_WHITESPACE_RE = re.compile(r"\s+")

TRACKING_PARAMS = frozenset({
    # UTM
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    # Facebook
    "fbclid", "fb_action_ids", "fb_action_types", "fb_ref", "fb_source",
    # Google
    "gclid", "gclsrc", "dclid", "gbraid", "wbraid",
    # General
    "ref", "referrer", "source", "campaign", "medium",
    # Social
    "igshid", "twclid", "li_fat_id",
    # Analytics
    "_ga", "_gl", "_ke", "mc_cid", "mc_eid",
    # Affiliate
    "aff_id", "affiliate_id", "aff", "tag",
    # Email
    "email_id", "email_campaign", "email_source",
    # Other
    "pk_campaign", "pk_kwd", "pk_medium", "pk_source", "hsctatracking",
})

_DEFAULT_PORTS = {"http": 80, "https": 443}

_DOMAIN_RE = re.compile(
    r"^[^\s/$.?#][^\s]*\.[a-zA-Z]{2,}(/[\w.\-]*)*/?(\?[\w%.\-]+=[\w%.\-]+(&[\w%.\-]+=[\w%.\-]+)*)?(#\w*)?$"
)

_RECIPE_KEYWORDS_RE = re.compile(
    r"ingredients|directions|instructions|recipe|servings|yield|method|steps",
    re.IGNORECASE,
)
MIN_RECIPE_TEXT_LENGTH = 100


def preprocess_raw_text(text: str) -> str:
    """
    Normalize pasted text.

    Newlines become ``\\n``, runs of 3+ newlines collapse to exactly 2,
    surrounding whitespace is trimmed. Idempotent.
    """
    if not text:
        return ""
    text = _NEWLINES_RE.sub("\n", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def normalize_url(url: str) -> str:
    """
    Normalize a URL so equivalent links share one cache identity.

    Lowercases scheme and host, drops ``www.``, default ports, fragments
    and tracking parameters, sorts the remaining query and strips a
    trailing slash from non-root paths.

    Examples:
        HTTPS://WWW.Example.com:443/Pasta/?utm_source=x&b=2&a=1#step-3
            -> https://example.com/Pasta?a=1&b=2
    """
    if not url or not url.strip():
        raise ValueError("URL must be a non-empty string")

    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = "https://" + url

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]

    netloc = host
    if parts.port and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key.lower() not in TRACKING_PARAMS
    ]
    query.sort(key=lambda kv: kv[0])

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, urlencode(query), ""))


def _canonical_text(text: str) -> str:
    """Whitespace- and case-insensitive form of a text input."""
    return _WHITESPACE_RE.sub(" ", preprocess_raw_text(text)).lower()


def _digest(namespace: str, value: str) -> str:
    return hashlib.sha256(f"{namespace}:{value}".encode("utf-8")).hexdigest()


def fingerprint(raw_input: RawInput) -> str | None:
    """
    Stable cache identity for an input, or None when there is none.

    Uploaded images have no stable identity and are never cached.
    Videos are keyed by their source URL when known, else by transcript.
    """
    if raw_input.kind is InputKind.URL:
        return _digest("url", normalize_url(raw_input.payload))

    if raw_input.kind is InputKind.RAW_TEXT:
        canonical = _canonical_text(raw_input.payload)
        return _digest("text", canonical) if canonical else None

    if raw_input.kind is InputKind.VIDEO:
        video = raw_input.payload
        if video.source_url and video.source_url.strip():
            return _digest("video", normalize_url(video.source_url))
        canonical = _canonical_text(video.transcript)
        return _digest("video-text", canonical) if canonical else None

    return None


def detect_input_type(text: str) -> InputKind:
    """
    Classify a free-form input as a URL or raw recipe text.

    Bare domains ("example.com/pasta") count as URLs only when the input
    spans at most three lines.
    """
    trimmed = (text or "").strip()
    if re.match(r"^https?://", trimmed, re.IGNORECASE):
        return InputKind.URL
    if _DOMAIN_RE.match(trimmed) and len(text.split("\n")) <= 3:
        return InputKind.URL
    return InputKind.RAW_TEXT


def validate_recipe_text(text: str) -> str | None:
    """
    Check that preprocessed text plausibly holds a recipe.

    Returns an error message if invalid, None if valid.
    """
    if not text or not text.strip():
        return "Input text is empty"

    has_keywords = bool(_RECIPE_KEYWORDS_RE.search(text))
    if len(text) < MIN_RECIPE_TEXT_LENGTH and not has_keywords:
        return "Input does not appear to be a recipe (too short and missing recipe keywords)"

    return None
