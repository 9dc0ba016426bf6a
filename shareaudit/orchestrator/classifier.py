"""Anonymous-access classification of permission records."""

import re
from typing import Pattern, Tuple

from ..models.findings import ClassificationResult
from ..models.permissions import PermissionRecord

# Known shapes of links that grant access without sign-in. Only consulted
# for links that carry no structured scope.
ANONYMOUS_URL_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"/guestaccess\.aspx", re.IGNORECASE),
    re.compile(r"[?&]guestaccesstoken=", re.IGNORECASE),
    re.compile(r"[?&]authkey=", re.IGNORECASE),
    re.compile(r"^https?://1drv\.ms/", re.IGNORECASE),
)

NOT_ANONYMOUS = ClassificationResult(is_anonymous=False, category='none', reason='no anonymous access')


def matches_anonymous_url(url: str) -> bool:
    return any(pattern.search(url) for pattern in ANONYMOUS_URL_PATTERNS)


def classify(permission: PermissionRecord) -> ClassificationResult:
    """Decide whether a permission exposes its item without authentication.

    Structured link scope wins over URL heuristics, and both win over guest
    identity, so a permission is explained by at most one reason.
    """
    link = permission.link
    scope = (link.scope or '').lower() if link else ''

    if scope == 'anonymous':
        return ClassificationResult(True, 'anonymous', 'anonymous sharing link')
    if scope == 'anyone':
        return ClassificationResult(True, 'anyone', 'anyone-with-link')

    if link is not None and not scope and link.web_url and matches_anonymous_url(link.web_url):
        return ClassificationResult(True, 'anonymous', 'URL pattern match')

    principal = permission.granted_to
    if principal is not None and principal.is_guest and (link is None or link.is_anonymous_scope):
        return ClassificationResult(True, 'guest', f'guest user access: {principal.identifier}')

    return NOT_ANONYMOUS
