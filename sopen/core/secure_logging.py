"""
Log sanitization for credentials and operator-supplied text.

Dependency URIs (MongoDB, Redis, AMQP) routinely embed passwords, and the
auth credential blob is a private key. Anything derived from them goes
through this module before it reaches a log line or an HTTP response.

Usage:
    from sopen.core.secure_logging import mask_uri, sanitize_for_log

    logger.info(f"Connecting to {mask_uri(settings.datastore_uri)}")
"""

import re
from urllib.parse import urlsplit, urlunsplit

_CONTROL_CHAR_RE = re.compile(r'[\x00-\x1f\x7f]')


def sanitize_for_log(val, max_len: int = 200) -> str:
    """Strip control characters and limit length (CWE-117)."""
    return _CONTROL_CHAR_RE.sub('', str(val))[:max_len]


def mask_sensitive(val, visible_prefix: int = 4) -> str:
    """Mask a secret, showing only the first ``visible_prefix`` characters."""
    s = str(val)
    if len(s) <= visible_prefix:
        return '****'
    return s[:visible_prefix] + '****'


def mask_uri(uri: str) -> str:
    """Replace the password component of a URI with ``****``.

    ``mongodb://user:secret@db:27017/sopen`` -> ``mongodb://user:****@db:27017/sopen``.
    Strings that do not parse as URIs are masked wholesale.
    """
    if not uri:
        return ''
    try:
        parts = urlsplit(uri)
    except ValueError:
        return mask_sensitive(uri)
    if not parts.scheme:
        return sanitize_for_log(uri)
    if parts.password is None:
        return sanitize_for_log(uri)

    # netloc may hold several hosts (mongodb replica sets), so rebuild by hand
    userinfo, _, hosts = parts.netloc.rpartition('@')
    user = userinfo.split(':', 1)[0]
    netloc = f"{user}:****@{hosts}"
    return sanitize_for_log(urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment)))
