import pytest
from sqlalchemy import func, select

from officeshare.models.organization import Membership, Organization
from officeshare.services.organizations import (
    SECRET_ALPHABET,
    OrganizationError,
    OrganizationErrorReason,
    create_notice,
    create_organization,
    generate_secret_key,
    get_user_organization,
    is_member,
    is_owner_or_member,
    join_organization,
    leave_organization,
    list_members,
)
from tests.conftest import add_member, make_link, make_org, make_user


def test_secret_key_shape():
    key = generate_secret_key()
    assert len(key) == 6
    assert all(c in SECRET_ALPHABET for c in key)


@pytest.mark.asyncio
async def test_create_makes_creator_admin(db):
    creator = await make_user(db)
    org = await create_organization(db, "Accounts", "Finance team", 3, creator.id)

    assert len(org.secret_key) == 6
    found = await get_user_organization(db, creator.id)
    assert found is not None
    assert found[0].id == org.id
    assert found[1] == "admin"
    assert await is_member(db, creator.id, org.id)


@pytest.mark.asyncio
async def test_create_refuses_user_already_in_an_org(db):
    creator = await make_user(db)
    await create_organization(db, "First", "", 3, creator.id)
    with pytest.raises(OrganizationError) as exc:
        await create_organization(db, "Second", "", 3, creator.id)
    assert exc.value.reason is OrganizationErrorReason.ALREADY_IN_ORG


@pytest.mark.asyncio
async def test_join_with_code(db):
    admin = await make_user(db)
    joiner = await make_user(db)
    org = await make_org(db, admin, secret_key="JOIN42")

    joined = await join_organization(db, "join42", joiner.id)

    assert joined.id == org.id
    assert await is_member(db, joiner.id, org.id)
    assert [m.role for m in await list_members(db, org.id)] == ["admin", "member"]


@pytest.mark.asyncio
async def test_join_invalid_code(db):
    user = await make_user(db)
    with pytest.raises(OrganizationError) as exc:
        await join_organization(db, "ZZZZZZ", user.id)
    assert exc.value.reason is OrganizationErrorReason.INVALID_CODE


@pytest.mark.asyncio
async def test_join_refuses_member_of_another_org(db):
    a_admin = await make_user(db)
    b_admin = await make_user(db)
    user = await make_user(db)
    await make_org(db, a_admin, secret_key="AAAAAA")
    await make_org(db, b_admin, secret_key="BBBBBB")
    await join_organization(db, "AAAAAA", user.id)

    with pytest.raises(OrganizationError) as exc:
        await join_organization(db, "BBBBBB", user.id)
    assert exc.value.reason is OrganizationErrorReason.ALREADY_IN_ORG


@pytest.mark.asyncio
async def test_join_full_org_creates_no_membership(db):
    admin = await make_user(db)
    second = await make_user(db)
    late = await make_user(db)
    org = await make_org(db, admin, secret_key="ABC123", max_members=2)
    await add_member(db, org, second)

    with pytest.raises(OrganizationError) as exc:
        await join_organization(db, "ABC123", late.id)

    assert exc.value.reason is OrganizationErrorReason.ORG_FULL
    count = (await db.execute(
        select(func.count()).select_from(Membership).where(Membership.organization_id == org.id)
    )).scalar_one()
    assert count == 2
    assert not await is_member(db, late.id, org.id)


@pytest.mark.asyncio
async def test_leave_is_idempotent(db):
    admin = await make_user(db)
    user = await make_user(db)
    org = await make_org(db, admin)
    await add_member(db, org, user)

    assert await leave_organization(db, user.id) is True
    assert await leave_organization(db, user.id) is False
    assert not await is_member(db, user.id, org.id)
    assert await get_user_organization(db, user.id) is None


@pytest.mark.asyncio
async def test_owner_supersedes_membership(db):
    owner = await make_user(db)
    stranger = await make_user(db)
    org = await make_org(db, owner)
    link = await make_link(db, owner, organization=org)
    await leave_organization(db, owner.id)

    assert await is_owner_or_member(db, owner.id, link)
    assert not await is_owner_or_member(db, stranger.id, link)
    assert not await is_owner_or_member(db, None, link)


@pytest.mark.asyncio
async def test_personal_link_is_owner_only_for_membership_gate(db):
    owner = await make_user(db)
    other = await make_user(db)
    link = await make_link(db, owner)
    assert await is_owner_or_member(db, owner.id, link)
    assert not await is_owner_or_member(db, other.id, link)


@pytest.mark.asyncio
async def test_only_org_admins_post_notices(db):
    admin = await make_user(db)
    member = await make_user(db)
    outsider = await make_user(db)
    org = await make_org(db, admin)
    await add_member(db, org, member)

    notice = await create_notice(db, admin.id, "Office closed", "Friday is a holiday")
    assert notice.organization_id == org.id
    assert notice.author.email == admin.email

    with pytest.raises(OrganizationError) as exc:
        await create_notice(db, member.id, "Hi", "there")
    assert exc.value.reason is OrganizationErrorReason.NOT_ORG_ADMIN

    with pytest.raises(OrganizationError) as exc:
        await create_notice(db, outsider.id, "Hi", "there")
    assert exc.value.reason is OrganizationErrorReason.NOT_IN_ORG


@pytest.mark.asyncio
async def test_secret_keys_are_unique(db):
    orgs = []
    for _ in range(5):
        creator = await make_user(db)
        orgs.append(await create_organization(db, "Team", "", 2, creator.id))
    keys = (await db.execute(select(Organization.secret_key))).scalars().all()
    assert len(set(keys)) == len(keys) == 5
