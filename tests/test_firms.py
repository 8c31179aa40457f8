"""Firm registry: create, update, onboarding completion, reads."""

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from firm_portal.core.exceptions import (
    ConflictError,
    NotFoundError,
    OnboardingAlreadyCompletedError,
)
from firm_portal.core.pagination import PaginationParams
from firm_portal.domain.audit import AuditLog
from firm_portal.domain.mixins import as_utc
from firm_portal.schemas.audit import AuditAction, NetworkContext
from firm_portal.schemas.firm import FirmContact, FirmUpdate
from firm_portal.services.firms import DUPLICATE_EMAIL_MESSAGE, FirmRegistry

ADMIN = "admin@firm-portal.test"


def _page(**kwargs) -> PaginationParams:
    params = {"page": 1, "limit": 20, "sort": "created_at", "order": "desc"}
    params.update(kwargs)
    return PaginationParams(**params)


async def _entries(session, action, entity_id):
    result = await session.execute(
        select(AuditLog).where(AuditLog.action == action).where(AuditLog.entity_id == entity_id)
    )
    return list(result.scalars().all())


# =============================================================================
# create
# =============================================================================

async def test_create_firm(session, clock):
    registry = FirmRegistry(session, clock)
    network = NetworkContext(ip_address="10.0.0.5", user_agent="pytest")

    firm = await registry.create(
        "Acme LLP",
        "ops@acme.test",
        ADMIN,
        contact=FirmContact(contact_person="Jo Park", phone="555-0100"),
        network=network,
    )

    assert firm.has_completed_onboarding is False
    assert firm.identity_ref is None
    assert firm.contact_person == "Jo Park"

    [entry] = await _entries(session, AuditAction.FIRM_CREATED, firm.id)
    assert entry.actor == ADMIN
    assert entry.actor_type == "admin"
    assert entry.new_value["email"] == "ops@acme.test"
    assert entry.new_value["contactPerson"] == "Jo Park"
    assert entry.ip_address == "10.0.0.5"
    assert entry.user_agent == "pytest"


async def test_create_duplicate_email_is_conflict(session, clock):
    registry = FirmRegistry(session, clock)
    await registry.create("Acme LLP", "ops@acme.test", ADMIN)

    with pytest.raises(ConflictError) as exc:
        await registry.create("Acme Two", "ops@acme.test", ADMIN)
    assert exc.value.message == DUPLICATE_EMAIL_MESSAGE


async def test_email_match_is_case_sensitive(session, clock):
    registry = FirmRegistry(session, clock)
    await registry.create("Acme LLP", "ops@acme.test", ADMIN)

    other = await registry.create("Acme Caps", "OPS@acme.test", ADMIN)
    assert other.email == "OPS@acme.test"


# =============================================================================
# update
# =============================================================================

async def test_update_records_before_and_after(session, clock):
    registry = FirmRegistry(session, clock)
    firm = await registry.create("Acme LLP", "ops@acme.test", ADMIN)

    clock.advance(hours=2)
    updated = await registry.update(
        firm.id, FirmUpdate(name="Acme Partners", phone="555-0199"), ADMIN
    )

    assert updated.name == "Acme Partners"
    assert as_utc(updated.updated_at) == clock.now
    [entry] = await _entries(session, AuditAction.FIRM_UPDATED, firm.id)
    assert entry.old_value["name"] == "Acme LLP"
    assert entry.new_value["name"] == "Acme Partners"
    assert entry.extra == {"changedFields": ["name", "phone"]}
    assert as_utc(entry.timestamp) >= as_utc(updated.updated_at)


async def test_update_to_taken_email_is_conflict(session, clock):
    registry = FirmRegistry(session, clock)
    await registry.create("Acme LLP", "ops@acme.test", ADMIN)
    other = await registry.create("Beta Co", "hello@beta.test", ADMIN)

    with pytest.raises(ConflictError):
        await registry.update(other.id, FirmUpdate(email="ops@acme.test"), ADMIN)
    assert await _entries(session, AuditAction.FIRM_UPDATED, other.id) == []


async def test_update_keeping_own_email(session, clock):
    registry = FirmRegistry(session, clock)
    firm = await registry.create("Acme LLP", "ops@acme.test", ADMIN)

    updated = await registry.update(firm.id, FirmUpdate(email="ops@acme.test"), ADMIN)
    assert updated.email == "ops@acme.test"


async def test_update_can_clear_contact_fields(session, clock):
    registry = FirmRegistry(session, clock)
    firm = await registry.create(
        "Acme LLP", "ops@acme.test", ADMIN, contact=FirmContact(contact_person="Jo Park", phone="555-0100")
    )

    updated = await registry.update(firm.id, FirmUpdate(phone=None), ADMIN)

    assert updated.phone is None
    assert updated.contact_person == "Jo Park"
    [entry] = await _entries(session, AuditAction.FIRM_UPDATED, firm.id)
    assert entry.old_value["phone"] == "555-0100"
    assert entry.new_value["phone"] is None
    assert entry.extra == {"changedFields": ["phone"]}


@pytest.mark.parametrize("field", ["name", "email"])
def test_update_rejects_null_name_or_email(field):
    with pytest.raises(PydanticValidationError):
        FirmUpdate(**{field: None})


async def test_update_unknown_firm(session, clock):
    with pytest.raises(NotFoundError):
        await FirmRegistry(session, clock).update("missing", FirmUpdate(name="X"), ADMIN)


# =============================================================================
# complete_onboarding
# =============================================================================

async def test_complete_onboarding(session, clock):
    registry = FirmRegistry(session, clock)
    firm = await registry.create("Acme LLP", "ops@acme.test", ADMIN)

    clock.advance(minutes=30)
    done = await registry.complete_onboarding("ops@acme.test", "user_123")

    assert done.has_completed_onboarding is True
    assert done.identity_ref == "user_123"
    [entry] = await _entries(session, AuditAction.FIRM_ONBOARDING_COMPLETED, firm.id)
    assert entry.actor == "ops@acme.test"
    assert entry.actor_type == "firm"
    assert entry.old_value == {"hasCompletedOnboarding": False}
    assert entry.new_value == {"hasCompletedOnboarding": True, "identityRef": "user_123"}
    assert entry.extra == {"identityRef": "user_123", "source": "interactive"}
    assert as_utc(entry.timestamp) >= as_utc(done.updated_at)


async def test_complete_onboarding_unknown_email(session, clock):
    with pytest.raises(NotFoundError):
        await FirmRegistry(session, clock).complete_onboarding("a@b.com", "user_1")


async def test_complete_onboarding_twice_is_rejected(session, clock):
    registry = FirmRegistry(session, clock)
    firm = await registry.create("Acme LLP", "ops@acme.test", ADMIN)
    await registry.complete_onboarding("ops@acme.test", "user_123")

    with pytest.raises(OnboardingAlreadyCompletedError):
        await registry.complete_onboarding("ops@acme.test", "user_999")

    assert firm.identity_ref == "user_123"
    assert len(await _entries(session, AuditAction.FIRM_ONBOARDING_COMPLETED, firm.id)) == 1


# =============================================================================
# reads
# =============================================================================

async def test_list_firms_newest_first(session, clock):
    registry = FirmRegistry(session, clock)
    for idx in range(3):
        await registry.create(f"Firm {idx}", f"firm{idx}@example.test", ADMIN)
        clock.advance(minutes=1)

    items, total = await registry.list_firms(_page())
    assert total == 3
    assert [f.name for f in items] == ["Firm 2", "Firm 1", "Firm 0"]

    items, total = await registry.list_firms(_page(limit=2, page=2))
    assert total == 3
    assert [f.name for f in items] == ["Firm 0"]


async def test_get_firm_and_find_by_email(session, clock):
    registry = FirmRegistry(session, clock)
    firm = await registry.create("Acme LLP", "ops@acme.test", ADMIN)

    assert (await registry.get_firm(firm.id)).email == "ops@acme.test"
    assert (await registry.find_by_email("ops@acme.test")).id == firm.id
    assert await registry.find_by_email("nobody@acme.test") is None
    with pytest.raises(NotFoundError):
        await registry.get_firm("missing")
