"""Permission data models for ShareAudit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from dataclasses_json import DataClassJsonMixin

GUEST_MARKERS = ("#ext#", "urn:spo:guest")


@dataclass(frozen=True, slots=True)
class ResourceRef(DataClassJsonMixin):
    """A node in the site → drive → item hierarchy."""

    site_id: str
    drive_id: str
    item_id: str
    item_path: str = ""

    @property
    def key(self) -> str:
        """Stable string form used in logs."""
        return f"{self.site_id}/{self.drive_id}/{self.item_id}"


@dataclass(frozen=True, slots=True)
class SharingLink:
    """The ``link`` facet of a permission."""

    scope: Optional[str] = None
    type: Optional[str] = None
    web_url: Optional[str] = None
    expires_on: Optional[str] = None
    has_password: bool = False

    @property
    def is_anonymous_scope(self) -> bool:
        return (self.scope or "").lower() in ("anonymous", "anyone")


@dataclass(frozen=True, slots=True)
class Principal:
    """The identity a permission was granted to."""

    identifier: str
    display_name: Optional[str] = None
    is_guest: bool = False

    @classmethod
    def from_graph(cls, identity_set: Optional[Dict[str, Any]]) -> Optional[Principal]:
        """Build a principal from a Graph identitySet, or None if it names nobody."""
        if not identity_set:
            return None

        user = identity_set.get("user") or {}
        site_user = identity_set.get("siteUser") or {}
        group = identity_set.get("group") or identity_set.get("siteGroup") or {}

        candidates = [
            user.get("email"),
            user.get("userPrincipalName"),
            site_user.get("email"),
            site_user.get("loginName"),
            group.get("email"),
            user.get("id"),
            group.get("id"),
            user.get("displayName"),
            site_user.get("displayName"),
            group.get("displayName"),
        ]
        identifier = next((c for c in candidates if c), None)
        if identifier is None:
            return None

        display_name = (
            user.get("displayName")
            or site_user.get("displayName")
            or group.get("displayName")
        )
        return cls(
            identifier=identifier,
            display_name=display_name,
            is_guest=_looks_like_guest(user, site_user),
        )


def _looks_like_guest(user: Dict[str, Any], site_user: Dict[str, Any]) -> bool:
    if (user.get("userType") or "").lower() == "guest":
        return True
    values = (
        user.get("email"),
        user.get("userPrincipalName"),
        site_user.get("email"),
        site_user.get("loginName"),
    )
    for value in values:
        lowered = (value or "").lower()
        if any(marker in lowered for marker in GUEST_MARKERS):
            return True
    return False


def _first_identity(permission: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for key in ("grantedToV2", "grantedTo"):
        if permission.get(key):
            return permission[key]
    for key in ("grantedToIdentitiesV2", "grantedToIdentities"):
        identities: Iterable[Dict[str, Any]] = permission.get(key) or []
        for identity in identities:
            if identity:
                return identity
    return None


@dataclass(frozen=True, slots=True)
class PermissionRecord:
    """A permission as returned by the API, with every optional part explicit."""

    permission_id: str
    link: Optional[SharingLink] = None
    granted_to: Optional[Principal] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_graph(cls, permission: Dict[str, Any]) -> PermissionRecord:
        """Create a record from a raw Graph permission resource."""
        link_data = permission.get("link")
        link = None
        if isinstance(link_data, dict):
            link = SharingLink(
                scope=link_data.get("scope"),
                type=link_data.get("type"),
                web_url=link_data.get("webUrl"),
                expires_on=link_data.get("expirationDateTime") or permission.get("expirationDateTime"),
                has_password=bool(permission.get("hasPassword") or link_data.get("hasPassword")),
            )

        return cls(
            permission_id=str(permission.get("id") or ""),
            link=link,
            granted_to=Principal.from_graph(_first_identity(permission)),
            roles=frozenset(permission.get("roles") or ()),
        )
