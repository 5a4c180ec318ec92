from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from officeshare.services.access_policy import (
    Decision,
    Intent,
    evaluate_access,
    resolution_error,
    resolve_link,
)
from tests.conftest import add_member, identity, make_link, make_org, make_user


def _link(owner_id="owner", organization_id=None, expires_in=timedelta(hours=1), views=0, max_views=5):
    link = MagicMock()
    link.owner_id = owner_id
    link.organization_id = organization_id
    link.file_name = "budget.xlsx"
    link.file_size = 1024
    link.expires_at = datetime(2026, 1, 1, 12, 0) + expires_in
    link.views = views
    link.max_views = max_views
    return link


NOW = datetime(2026, 1, 1, 12, 0)


def _requester(user_id):
    from officeshare.core.security import Identity
    return Identity(user_id=user_id, email=f"{user_id}@example.com")


class TestEvaluateAccess:
    def test_missing_record_is_not_found(self):
        assert evaluate_access(None, None, NOW, Intent.DOWNLOAD).decision is Decision.NOT_FOUND

    def test_personal_link_is_a_bearer_link(self):
        res = evaluate_access(_link(), None, NOW, Intent.DOWNLOAD)
        assert res.decision is Decision.ALLOW
        assert res.metadata.file_name == "budget.xlsx"
        assert res.metadata.is_owner is False
        assert res.metadata.is_organization_file is False

    def test_past_expiry_with_views_left_is_expired(self):
        res = evaluate_access(_link(expires_in=-timedelta(seconds=1), views=0), None, NOW, Intent.DOWNLOAD)
        assert res.decision is Decision.EXPIRED
        assert res.metadata.is_expired is True

    def test_exhausted_views_is_expired(self):
        res = evaluate_access(_link(views=5, max_views=5), None, NOW, Intent.DOWNLOAD)
        assert res.decision is Decision.EXPIRED

    def test_expiry_instant_itself_is_still_live(self):
        res = evaluate_access(_link(expires_in=timedelta(0)), None, NOW, Intent.DOWNLOAD)
        assert res.decision is Decision.ALLOW

    @pytest.mark.parametrize("expired", [True, False])
    def test_anonymous_on_org_link_needs_auth_before_expiry(self, expired):
        link = _link(organization_id="org", expires_in=-timedelta(days=1) if expired else timedelta(days=1))
        res = evaluate_access(link, None, NOW, Intent.DOWNLOAD)
        assert res.decision is Decision.ORG_AUTH_REQUIRED
        assert res.metadata is None
        assert res.link is None

    @pytest.mark.parametrize("expired", [True, False])
    def test_non_member_on_org_link_is_denied_before_expiry(self, expired):
        link = _link(organization_id="org", views=5 if expired else 0)
        res = evaluate_access(link, _requester("stranger"), NOW, Intent.DOWNLOAD, requester_is_member=False)
        assert res.decision is Decision.ORG_ACCESS_DENIED
        assert res.metadata is None

    @pytest.mark.parametrize("expired,expected", [(True, Decision.EXPIRED), (False, Decision.ALLOW)])
    def test_owner_on_org_link_reaches_expiry_check(self, expired, expected):
        link = _link(organization_id="org", views=5 if expired else 0)
        res = evaluate_access(link, _requester("owner"), NOW, Intent.DOWNLOAD, requester_is_member=False)
        assert res.decision is expected
        assert res.metadata.is_owner is True

    def test_member_on_org_link_is_allowed(self):
        link = _link(organization_id="org")
        res = evaluate_access(link, _requester("colleague"), NOW, Intent.DOWNLOAD, requester_is_member=True)
        assert res.decision is Decision.ALLOW
        assert res.metadata.is_organization_file is True

    def test_preview_is_owner_only(self):
        link = _link()
        assert evaluate_access(link, None, NOW, Intent.PREVIEW).decision is Decision.OWNER_ONLY_DENIED
        assert evaluate_access(link, _requester("other"), NOW, Intent.PREVIEW).decision is Decision.OWNER_ONLY_DENIED
        assert evaluate_access(link, _requester("owner"), NOW, Intent.PREVIEW).decision is Decision.ALLOW

    def test_preview_ignores_membership(self):
        link = _link(organization_id="org")
        res = evaluate_access(link, _requester("colleague"), NOW, Intent.PREVIEW, requester_is_member=True)
        assert res.decision is Decision.OWNER_ONLY_DENIED

    def test_dashboard_metadata_is_owner_only(self):
        link = _link()
        res = evaluate_access(link, _requester("other"), NOW, Intent.METADATA, from_owner_surface=True)
        assert res.decision is Decision.OWNER_ONLY_DENIED
        res = evaluate_access(link, _requester("owner"), NOW, Intent.METADATA, from_owner_surface=True)
        assert res.decision is Decision.ALLOW

    def test_owner_check_precedes_expiry(self):
        link = _link(expires_in=-timedelta(days=3))
        res = evaluate_access(link, _requester("other"), NOW, Intent.PREVIEW)
        assert res.decision is Decision.OWNER_ONLY_DENIED

    def test_expired_stays_expired_as_time_moves_on(self):
        link = _link(expires_in=timedelta(minutes=5))
        seen_expired = False
        for minutes in range(0, 60, 2):
            decision = evaluate_access(link, None, NOW + timedelta(minutes=minutes), Intent.DOWNLOAD).decision
            if seen_expired:
                assert decision is Decision.EXPIRED
            seen_expired = seen_expired or decision is Decision.EXPIRED
        assert seen_expired


class TestResolutionErrors:
    @pytest.mark.parametrize("decision,status,code", [
        (Decision.NOT_FOUND, 404, "NOT_FOUND"),
        (Decision.EXPIRED, 410, "LINK_EXPIRED"),
        (Decision.ORG_AUTH_REQUIRED, 401, "AUTHENTICATION_REQUIRED"),
        (Decision.ORG_ACCESS_DENIED, 403, "ORGANIZATION_ACCESS_DENIED"),
        (Decision.OWNER_ONLY_DENIED, 403, None),
        (Decision.STORE_ERROR, 503, "STORE_ERROR"),
    ])
    def test_mapping(self, decision, status, code):
        from officeshare.services.access_policy import LinkResolution
        err = resolution_error(LinkResolution(decision))
        assert err.status_code == status
        assert err.error == code

    def test_allow_is_not_an_error(self):
        from officeshare.services.access_policy import LinkResolution
        with pytest.raises(ValueError):
            resolution_error(LinkResolution(Decision.ALLOW))


class TestResolveLink:
    @pytest.mark.asyncio
    async def test_unknown_token(self, db):
        res = await resolve_link(db, "nope", None, datetime.utcnow(), Intent.METADATA)
        assert res.decision is Decision.NOT_FOUND

    @pytest.mark.asyncio
    async def test_membership_is_looked_up(self, db):
        owner = await make_user(db)
        colleague = await make_user(db)
        stranger = await make_user(db)
        org = await make_org(db, owner)
        await add_member(db, org, colleague)
        link = await make_link(db, owner, organization=org)

        now = datetime.utcnow()
        assert (await resolve_link(db, link.link_id, identity(colleague), now, Intent.DOWNLOAD)).decision is Decision.ALLOW
        assert (await resolve_link(db, link.link_id, identity(stranger), now, Intent.DOWNLOAD)).decision is Decision.ORG_ACCESS_DENIED
        assert (await resolve_link(db, link.link_id, None, now, Intent.DOWNLOAD)).decision is Decision.ORG_AUTH_REQUIRED

    @pytest.mark.asyncio
    async def test_owner_allowed_after_leaving_the_organization(self, db):
        owner = await make_user(db)
        org = await make_org(db, owner)
        link = await make_link(db, owner, organization=org)

        from officeshare.services.organizations import leave_organization
        await leave_organization(db, owner.id)

        res = await resolve_link(db, link.link_id, identity(owner), datetime.utcnow(), Intent.DOWNLOAD)
        assert res.decision is Decision.ALLOW
        assert res.metadata.is_owner is True

    @pytest.mark.asyncio
    async def test_authorization_precedes_disclosure(self, db):
        owner = await make_user(db)
        stranger = await make_user(db)
        org = await make_org(db, owner)
        expired = await make_link(db, owner, organization=org, expires_in=-timedelta(hours=1))

        now = datetime.utcnow()
        anon = await resolve_link(db, expired.link_id, None, now, Intent.METADATA)
        outsider = await resolve_link(db, expired.link_id, identity(stranger), now, Intent.METADATA)
        mine = await resolve_link(db, expired.link_id, identity(owner), now, Intent.METADATA)

        assert anon.decision is Decision.ORG_AUTH_REQUIRED
        assert outsider.decision is Decision.ORG_ACCESS_DENIED
        assert mine.decision is Decision.EXPIRED
        assert anon.metadata is None and outsider.metadata is None

    @pytest.mark.asyncio
    async def test_store_failure_becomes_store_error(self):
        broken = MagicMock()
        broken.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        res = await resolve_link(broken, "any", None, datetime.utcnow(), Intent.DOWNLOAD)
        assert res.decision is Decision.STORE_ERROR
        assert res.metadata is None

    @pytest.mark.asyncio
    async def test_org_gate_goes_through_owner_or_member_check(self, db, monkeypatch):
        owner = await make_user(db)
        colleague = await make_user(db)
        org = await make_org(db, owner)
        link = await make_link(db, owner, organization=org)

        gate = AsyncMock(return_value=True)
        monkeypatch.setattr("officeshare.services.access_policy.is_owner_or_member", gate)
        now = datetime.utcnow()

        res = await resolve_link(db, link.link_id, identity(colleague), now, Intent.DOWNLOAD)
        assert res.decision is Decision.ALLOW
        gate.assert_awaited_once()
        assert gate.await_args.args[1] == colleague.id

        # owner-only surfaces never consult membership
        gate.reset_mock()
        res = await resolve_link(db, link.link_id, identity(colleague), now, Intent.PREVIEW)
        assert res.decision is Decision.OWNER_ONLY_DENIED
        gate.assert_not_awaited()
