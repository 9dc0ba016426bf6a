"""Finding data models for ShareAudit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Tuple

from dataclasses_json import DataClassJsonMixin

from .permissions import ResourceRef

# Type aliases for better type safety
AccessCategory = Literal['anonymous', 'anyone', 'guest', 'none']
IdempotencyKey = Tuple[str, str, str, str]


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Verdict of the anonymous-access classifier for one permission."""

    is_anonymous: bool
    category: AccessCategory
    reason: str


@dataclass(frozen=True, slots=True)
class Finding(DataClassJsonMixin):
    """A permission judged to expose an item anonymously."""

    ref: ResourceRef
    permission_id: str
    classification_reason: str
    link_scope: Optional[str] = None
    link_type: Optional[str] = None
    granted_to: Optional[str] = None
    expires_on: Optional[str] = None
    has_password: bool = False
    roles: Tuple[str, ...] = ()
    item_name: str = ""
    site_name: str = ""
    link_url: Optional[str] = None
    scan_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Validate finding data after initialization."""
        if not self.permission_id:
            raise ValueError("Permission ID cannot be empty")
        if not self.ref.item_id:
            raise ValueError("Item ID cannot be empty")

    @property
    def idempotency_key(self) -> IdempotencyKey:
        return (self.ref.site_id, self.ref.drive_id, self.ref.item_id, self.permission_id)

    def to_dict(self, encode_json: bool = False) -> Dict[str, Any]:
        """Convert finding to the camelCase scan-output shape."""
        return {
            'siteId': self.ref.site_id,
            'siteName': self.site_name,
            'driveId': self.ref.drive_id,
            'itemId': self.ref.item_id,
            'itemName': self.item_name,
            'itemPath': self.ref.item_path,
            'permissionId': self.permission_id,
            'linkScope': self.link_scope,
            'linkType': self.link_type,
            'linkUrl': self.link_url,
            'grantedTo': self.granted_to,
            'expiresOn': self.expires_on,
            'hasPassword': self.has_password,
            'roles': list(self.roles),
            'scanTimestamp': self.scan_timestamp.isoformat(),
            'classificationReason': self.classification_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> Finding:
        """Create finding from its scan-output dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Finding must be an object, got {type(data).__name__}")
        timestamp = data.get('scanTimestamp')
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        kwargs: Dict[str, Any] = {}
        if timestamp is not None:
            kwargs['scan_timestamp'] = timestamp

        return cls(
            ref=ResourceRef(
                site_id=data.get('siteId', ''),
                drive_id=data.get('driveId', ''),
                item_id=data.get('itemId', ''),
                item_path=data.get('itemPath', ''),
            ),
            permission_id=data.get('permissionId', ''),
            classification_reason=data.get('classificationReason', ''),
            link_scope=data.get('linkScope'),
            link_type=data.get('linkType'),
            granted_to=data.get('grantedTo'),
            expires_on=data.get('expiresOn'),
            has_password=bool(data.get('hasPassword', False)),
            roles=tuple(data.get('roles') or ()),
            item_name=data.get('itemName', ''),
            site_name=data.get('siteName', ''),
            link_url=data.get('linkUrl'),
            **kwargs,
        )
