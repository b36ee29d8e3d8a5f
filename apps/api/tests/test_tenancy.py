"""
Tests for tenant resolution and principal materialization.
"""
import logging

from models import Company
from services.authorization import Role
from services.tenancy import build_principal, normalize_email, resolve_company_id


def test_normalize_email():
    assert normalize_email("  Mixed.Case@Example.COM ") == "mixed.case@example.com"


def test_owner_resolves_through_owned_company(db_session, factory):
    company, owner = factory.company("solo@example.com", name="Solo FC")
    owner.company_id = None
    db_session.commit()

    assert resolve_company_id(db_session, owner) == company.id


def test_owner_mismatch_is_logged_and_owned_company_wins(db_session, factory, caplog):
    company, owner = factory.company("one@example.com", name="One FC")
    other, _ = factory.company("two@example.com", name="Two FC")
    owner.company_id = other.id
    db_session.commit()

    with caplog.at_level(logging.ERROR, logger="services.tenancy"):
        assert resolve_company_id(db_session, owner) == company.id
    assert "disagrees" in caplog.text


def test_member_resolves_through_company_id(tenant, db_session):
    assert resolve_company_id(db_session, tenant.coach) == tenant.company.id


def test_owner_without_company(db_session, factory):
    owner = factory.user("orphan@example.com", "owner")
    db_session.commit()
    assert db_session.query(Company).count() == 0
    assert resolve_company_id(db_session, owner) is None


def test_build_principal(tenant, db_session):
    principal = build_principal(db_session, tenant.parent)
    assert principal.role is Role.parent
    assert principal.company_id == tenant.company.id
    assert principal.email_verified is True
    assert principal.onboarded is True
