"""Unit tests for anonymous-access classification."""

import pytest

from shareaudit.models.permissions import PermissionRecord, Principal, SharingLink
from shareaudit.orchestrator.classifier import classify, matches_anonymous_url

GUEST = Principal(identifier="jane_fabrikam.com#EXT#@contoso.onmicrosoft.com", is_guest=True)
MEMBER = Principal(identifier="bob@contoso.com")


@pytest.mark.parametrize(
    "record, anonymous, category",
    [
        (PermissionRecord("p1", link=SharingLink(scope="anonymous", type="view")), True, "anonymous"),
        (PermissionRecord("p2", link=SharingLink(scope="anyone", type="edit")), True, "anyone"),
        (PermissionRecord("p3", link=SharingLink(scope="organization", type="view")), False, "none"),
        (PermissionRecord("p4", granted_to=GUEST), True, "guest"),
        (PermissionRecord("p5", link=SharingLink(scope="organization"), granted_to=GUEST), False, "none"),
        (PermissionRecord("p6", granted_to=MEMBER), False, "none"),
        (PermissionRecord("p7"), False, "none"),
    ],
)
def test_classification_table(record, anonymous, category):
    result = classify(record)

    assert result.is_anonymous is anonymous
    assert result.category == category


class TestReasons:
    """Reason strings and rule precedence."""

    def test_link_scope_reasons(self):
        assert classify(PermissionRecord("p", link=SharingLink(scope="anonymous"))).reason == "anonymous sharing link"
        assert classify(PermissionRecord("p", link=SharingLink(scope="Anyone"))).reason == "anyone-with-link"

    def test_link_scope_wins_over_guest(self):
        record = PermissionRecord("p", link=SharingLink(scope="anonymous"), granted_to=GUEST)

        assert classify(record).reason == "anonymous sharing link"

    def test_guest_reason_names_identity(self):
        result = classify(PermissionRecord("p", granted_to=GUEST))

        assert result.reason == f"guest user access: {GUEST.identifier}"

    def test_url_pattern_used_only_without_scope(self):
        url = "https://contoso.sharepoint.com/sites/x/_layouts/15/guestaccess.aspx?share=abc"

        unscoped = classify(PermissionRecord("p", link=SharingLink(web_url=url)))
        scoped = classify(PermissionRecord("p", link=SharingLink(scope="organization", web_url=url)))

        assert unscoped.is_anonymous and unscoped.reason == "URL pattern match"
        assert not scoped.is_anonymous

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://1drv.ms/w/s!AbCdEf", True),
            ("https://onedrive.live.com/redir?resid=1&authkey=!ABC", True),
            ("https://x.sharepoint.com/:w:/g/doc?guestaccesstoken=xyz", True),
            ("https://x.sharepoint.com/sites/team/Shared%20Documents/a.docx", False),
        ],
    )
    def test_url_patterns(self, url, expected):
        assert matches_anonymous_url(url) is expected


class TestPermissionRecordFromGraph:
    """Parsing raw Graph permissions."""

    def test_anonymous_link_fields(self):
        record = PermissionRecord.from_graph({
            "id": "perm-1",
            "roles": ["read"],
            "hasPassword": True,
            "expirationDateTime": "2026-12-31T00:00:00Z",
            "link": {"scope": "anonymous", "type": "view", "webUrl": "https://x/y"},
        })

        assert record.permission_id == "perm-1"
        assert record.roles == frozenset({"read"})
        assert record.link.scope == "anonymous"
        assert record.link.has_password is True
        assert record.link.expires_on == "2026-12-31T00:00:00Z"
        assert record.granted_to is None

    def test_guest_site_user(self):
        record = PermissionRecord.from_graph({
            "id": "perm-2",
            "roles": ["write"],
            "grantedToV2": {
                "siteUser": {
                    "displayName": "Jane",
                    "loginName": "i:0#.f|membership|jane_fabrikam.com#ext#@contoso.onmicrosoft.com",
                },
            },
        })

        assert record.link is None
        assert record.granted_to.is_guest is True
        assert classify(record).category == "guest"

    def test_guest_user_type(self):
        record = PermissionRecord.from_graph({
            "id": "perm-3",
            "grantedTo": {"user": {"email": "jane@fabrikam.com", "userType": "Guest"}},
        })

        assert record.granted_to.identifier == "jane@fabrikam.com"
        assert record.granted_to.is_guest is True

    def test_identities_list_used_when_no_direct_grant(self):
        record = PermissionRecord.from_graph({
            "id": "perm-4",
            "link": {"scope": "organization", "type": "view"},
            "grantedToIdentitiesV2": [{"user": {"email": "bob@contoso.com", "displayName": "Bob"}}],
        })

        assert record.granted_to == Principal(identifier="bob@contoso.com", display_name="Bob", is_guest=False)
        assert not classify(record).is_anonymous

    def test_missing_fields_never_raise(self):
        record = PermissionRecord.from_graph({})

        assert record.permission_id == ""
        assert classify(record).is_anonymous is False
