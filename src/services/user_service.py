"""User directory: resolve phone numbers to the identity tools act under."""

import logging
from typing import Any

from src.core import db_client
from src.core.config import constants, settings
from src.core.db_client import sanitize_param
from src.core.logging import span
from src.domain.user import Collaboration, CollaborationStatus, User, UserContext, normalize_phone


logger = logging.getLogger(__name__)


async def _find_linked_user(phone: str) -> dict[str, Any] | None:
    return await db_client.get_first_record(
        collection="users",
        filter_query=f'phone_number = "{sanitize_param(phone)}" && linked_account_id != ""',
    )


async def _find_active_collaboration(phone: str) -> Collaboration | None:
    record = await db_client.get_first_record(
        collection="collaborations",
        filter_query=f'invitee_phone = "{sanitize_param(phone)}" && status = "{CollaborationStatus.ACTIVE}"',
    )
    return Collaboration(**record) if record else None


async def _find_ghost_user(phone: str) -> dict[str, Any] | None:
    return await db_client.get_first_record(
        collection="users",
        filter_query=f'phone_number = "{sanitize_param(phone)}"',
    )


def _context_for_user(record: dict[str, Any], phone: str) -> UserContext:
    user = User(**record)
    return UserContext(
        acting_id=user.id,
        display_name=user.display_name,
        phone=phone,
        is_linked=user.is_linked,
    )


async def resolve_user(*, phone: str, profile_name: str | None = None) -> UserContext:
    """Resolve a sender's phone number to exactly one acting identity.

    Resolution order:
    1. A user record linked to a web account with this phone number
    2. An active collaboration inviting this phone number; the inviter's ID
       becomes the acting ID while the collaborator keeps their own label
    3. The oldest unlinked ("ghost") record with this phone number
    4. A new ghost record, named after the WhatsApp profile if one is known

    Repeated calls return the same identity as long as no records change.

    Args:
        phone: Sender address, with or without the "whatsapp:" prefix
        profile_name: WhatsApp profile name, used only when creating a ghost

    Returns:
        UserContext for the sender
    """
    with span("user_service.resolve_user"):
        phone = normalize_phone(phone)

        linked = await _find_linked_user(phone)
        if linked:
            logger.debug("Resolved linked user", extra={"phone": phone, "user_id": linked["id"]})
            return _context_for_user(linked, phone)

        collaboration = await _find_active_collaboration(phone)
        if collaboration:
            try:
                await db_client.get_record(collection="users", record_id=collaboration.inviter_id)
            except KeyError:
                logger.warning(
                    "Collaboration points at a missing inviter",
                    extra={"collaboration_id": collaboration.id, "inviter_id": collaboration.inviter_id},
                )
            else:
                logger.debug(
                    "Resolved collaborator",
                    extra={"phone": phone, "inviter_id": collaboration.inviter_id},
                )
                return UserContext(
                    acting_id=collaboration.inviter_id,
                    display_name=collaboration.invitee_name or collaboration.invitee_email or phone,
                    phone=phone,
                    is_collaborator=True,
                )

        ghost = await _find_ghost_user(phone)
        if ghost:
            return _context_for_user(ghost, phone)

        async with db_client.atomic():
            # Another request may have created the ghost while we were looking
            ghost = await _find_ghost_user(phone)
            if ghost is None:
                ghost = await db_client.create_record(
                    collection="users",
                    data={
                        "phone_number": phone,
                        "display_name": (profile_name or "").strip() or settings.default_user_name,
                    },
                )
                logger.info("Created ghost user", extra={"phone": phone, "user_id": ghost["id"]})

        return _context_for_user(ghost, phone)


async def _list_all(*, collection: str, filter_query: str = "") -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await db_client.list_records(
            collection=collection,
            filter_query=filter_query,
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            page=page,
        )
        records.extend(batch)

        if len(batch) < constants.DEFAULT_PER_PAGE_LIMIT:
            return records

        page += 1


async def get_contact_phones() -> list[str]:
    """Return every distinct phone number the household can be reached at.

    Includes all user records and the invitees of active collaborations, in
    the order they were created.
    """
    with span("user_service.get_contact_phones"):
        users = await _list_all(collection="users")
        collaborations = await _list_all(
            collection="collaborations",
            filter_query=f'status = "{CollaborationStatus.ACTIVE}"',
        )

        phones: list[str] = []
        for raw in [u.get("phone_number") for u in users] + [c.get("invitee_phone") for c in collaborations]:
            if not raw:
                continue
            phone = normalize_phone(raw)
            if phone not in phones:
                phones.append(phone)

        return phones


async def link_account(*, phone: str, account_id: str, email: str | None = None) -> User:
    """Link a web account to a phone number, reusing a ghost record when one exists.

    Args:
        phone: Phone number the account owner messages from
        account_id: Identifier of the authenticated web account
        email: Optional account email

    Returns:
        The linked user
    """
    with span("user_service.link_account"):
        phone = normalize_phone(phone)
        async with db_client.atomic():
            record = await _find_linked_user(phone) or await _find_ghost_user(phone)
            data: dict[str, Any] = {"linked_account_id": account_id}
            if email:
                data["email"] = email
            if record:
                record = await db_client.update_record(collection="users", record_id=record["id"], data=data)
            else:
                record = await db_client.create_record(
                    collection="users",
                    data={"phone_number": phone, "display_name": settings.default_user_name, **data},
                )

        logger.info("Linked account", extra={"phone": phone, "user_id": record["id"]})
        return User(**record)
