"""Unit tests for user_service identity resolution."""

import pytest

from src.core import db_client
from src.core.config import constants, settings
from src.domain.user import normalize_phone
from src.services import user_service


PHONE = "+15550001111"


async def _create_collaboration(**kwargs):
    data = {"status": "active", **kwargs}
    return await db_client.create_record(collection="collaborations", data=data)


@pytest.mark.unit
class TestNormalizePhone:
    """Tests for normalize_phone."""

    def test_strips_whatsapp_prefix(self):
        assert normalize_phone("whatsapp:+15550001111") == "+15550001111"

    def test_strips_formatting(self):
        assert normalize_phone(" +1 (555) 000-1111 ") == "+15550001111"

    def test_adds_plus_to_bare_digits(self):
        assert normalize_phone("15550001111") == "+15550001111"


@pytest.mark.unit
class TestResolveUser:
    """Tests for resolve_user."""

    async def test_linked_user_wins(self, user_factory):
        await user_factory(phone=PHONE, display_name="Ghost")
        linked = await user_factory(phone=PHONE, display_name="Alice", linked_account_id="acct-1")

        user = await user_service.resolve_user(phone=f"whatsapp:{PHONE}")

        assert user.acting_id == linked["id"]
        assert user.display_name == "Alice"
        assert user.is_linked is True
        assert user.is_collaborator is False
        assert user.phone == PHONE

    async def test_linked_user_wins_over_collaboration(self, user_factory):
        owner = await user_factory(phone="+15550009999", display_name="Owner", linked_account_id="acct-9")
        linked = await user_factory(phone=PHONE, display_name="Alice", linked_account_id="acct-1")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone=PHONE, invitee_name="Al")

        user = await user_service.resolve_user(phone=PHONE)

        assert user.acting_id == linked["id"]

    async def test_collaborator_acts_as_inviter(self, user_factory):
        owner = await user_factory(phone="+15550009999", display_name="Owner", linked_account_id="acct-9")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone=PHONE, invitee_name="Grandma")

        user = await user_service.resolve_user(phone=PHONE)

        assert user.acting_id == owner["id"]
        assert user.display_name == "Grandma"
        assert user.phone == PHONE
        assert user.is_collaborator is True

    async def test_collaborator_label_falls_back_to_email_then_phone(self, user_factory):
        owner = await user_factory(phone="+15550009999", display_name="Owner")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone=PHONE, invitee_email="g@example.com")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone="+15550002222")

        by_email = await user_service.resolve_user(phone=PHONE)
        by_phone = await user_service.resolve_user(phone="+15550002222")

        assert by_email.display_name == "g@example.com"
        assert by_phone.display_name == "+15550002222"

    async def test_revoked_collaboration_is_ignored(self, user_factory):
        owner = await user_factory(phone="+15550009999", display_name="Owner")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone=PHONE, status="revoked")

        user = await user_service.resolve_user(phone=PHONE, profile_name="Sam")

        assert user.acting_id != owner["id"]
        assert user.is_collaborator is False
        assert user.display_name == "Sam"

    async def test_collaboration_with_missing_inviter_falls_through(self, sqlite_db):
        await _create_collaboration(inviter_id="404", invitee_phone=PHONE, invitee_name="Orphan")

        user = await user_service.resolve_user(phone=PHONE)

        assert user.is_collaborator is False
        assert user.acting_id != "404"

    async def test_existing_ghost_is_reused(self, user_factory):
        ghost = await user_factory(phone=PHONE, display_name="New User")

        user = await user_service.resolve_user(phone=PHONE)

        assert user.acting_id == ghost["id"]
        assert user.is_linked is False

    async def test_oldest_ghost_wins(self, user_factory):
        first = await user_factory(phone=PHONE, display_name="First")
        await user_factory(phone=PHONE, display_name="Second")

        user = await user_service.resolve_user(phone=PHONE)

        assert user.acting_id == first["id"]

    async def test_unknown_phone_creates_ghost_with_default_name(self, sqlite_db):
        user = await user_service.resolve_user(phone=PHONE)

        records = await db_client.list_records(collection="users")
        assert len(records) == 1
        assert records[0]["phone_number"] == PHONE
        assert user.acting_id == records[0]["id"]
        assert user.display_name == settings.default_user_name

    async def test_ghost_named_after_profile(self, sqlite_db):
        user = await user_service.resolve_user(phone=PHONE, profile_name="  Sam  ")

        assert user.display_name == "Sam"

    async def test_resolution_is_stable(self, sqlite_db):
        first = await user_service.resolve_user(phone=PHONE, profile_name="Sam")
        second = await user_service.resolve_user(phone=PHONE, profile_name="Someone Else")

        assert first == second
        assert len(await db_client.list_records(collection="users")) == 1


@pytest.mark.unit
class TestGetContactPhones:
    """Tests for get_contact_phones."""

    async def test_includes_users_and_active_invitees_once(self, user_factory):
        owner = await user_factory(phone="+15550000001", display_name="Owner")
        await user_factory(phone="+15550000002", display_name="Partner")
        await user_factory(phone="+15550000002", display_name="Partner ghost")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone="whatsapp:+15550000003")
        await _create_collaboration(inviter_id=owner["id"], invitee_phone="+15550000004", status="revoked")

        phones = await user_service.get_contact_phones()

        assert phones == ["+15550000001", "+15550000002", "+15550000003"]

    async def test_reads_every_page(self, user_factory, monkeypatch):
        monkeypatch.setattr(constants, "DEFAULT_PER_PAGE_LIMIT", 2)
        owner = await user_factory(phone="+15550000001", display_name="Owner")
        for n in range(2, 6):
            await user_factory(phone=f"+1555000000{n}", display_name=f"Member {n}")
        for n in range(6, 9):
            await _create_collaboration(inviter_id=owner["id"], invitee_phone=f"+1555000000{n}")

        phones = await user_service.get_contact_phones()

        assert phones == [f"+1555000000{n}" for n in range(1, 9)]


@pytest.mark.unit
class TestLinkAccount:
    """Tests for link_account."""

    async def test_links_existing_ghost(self, user_factory):
        ghost = await user_factory(phone=PHONE, display_name="Sam")

        user = await user_service.link_account(phone=PHONE, account_id="acct-1", email="sam@example.com")

        assert user.id == ghost["id"]
        assert user.is_linked is True
        assert user.email == "sam@example.com"

    async def test_creates_linked_user_for_new_phone(self, sqlite_db):
        user = await user_service.link_account(phone=PHONE, account_id="acct-1")

        resolved = await user_service.resolve_user(phone=PHONE)

        assert resolved.acting_id == user.id
        assert resolved.is_linked is True
