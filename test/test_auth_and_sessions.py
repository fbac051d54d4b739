import json

import pytest

from conftest import build_ledger

from posledger.domain.errors import AuthorizationError
from posledger.repositories.kv_store import InMemoryStore
from posledger.repositories.ledger_repo import SESSION_KEY, USERS_KEY
from posledger.services.auth_service import hash_secret, verify_secret


def _ledger_with_owner(store=None):
    ledger = build_ledger(store)
    owner = ledger.auth.ensure_bootstrap_owner("owner", "Owner#2024", name="Shop Owner")
    return ledger, owner


def test_secrets_are_stored_hashed():
    store = InMemoryStore()
    _ledger_with_owner(store)

    stored = json.loads(store.get(USERS_KEY))[0]
    assert stored["secret_hash"].startswith("pbkdf2_sha256$")
    assert "Owner#2024" not in store.get(USERS_KEY)


def test_bootstrap_only_runs_on_empty_credential_store():
    ledger, owner = _ledger_with_owner()

    assert owner.role == "owner"
    assert ledger.auth.ensure_bootstrap_owner("other", "Other#2024") is None
    assert [u.username for u in ledger.auth.list_users()] == ["owner"]


def test_login_persists_session_and_logout_clears_it():
    store = InMemoryStore()
    ledger, _ = _ledger_with_owner(store)

    session = ledger.auth.login("owner", "Owner#2024")

    assert session.name == "Shop Owner"
    assert json.loads(store.get(SESSION_KEY))["username"] == "owner"
    assert ledger.auth.current_session() == session
    ledger.auth.logout()
    assert ledger.auth.current_session() is None


def test_login_rejects_wrong_secret_and_unknown_user():
    ledger, _ = _ledger_with_owner()

    with pytest.raises(AuthorizationError):
        ledger.auth.login("owner", "wrong-pass1")
    with pytest.raises(AuthorizationError):
        ledger.auth.login("ghost", "Owner#2024")
    with pytest.raises(AuthorizationError):
        ledger.auth.login("  ", "Owner#2024")


def test_owner_creates_employee_who_cannot_manage_users():
    ledger, owner = _ledger_with_owner()
    employee = ledger.auth.create_user(owner, "cashier", "Sales#2025", "employee", name="Cashier")

    session = ledger.auth.login("cashier", "Sales#2025")
    assert session.role == "employee"
    assert ledger.auth.can(session, "record_sale")
    assert not ledger.auth.can(session, "manage_products")
    with pytest.raises(AuthorizationError):
        ledger.auth.create_user(employee, "intruder", "Intrude#99", "owner")


@pytest.mark.parametrize("secret", ["short1", "lettersonly", "1234567890"])
def test_weak_secrets_are_rejected(secret):
    ledger, owner = _ledger_with_owner()
    with pytest.raises(AuthorizationError):
        ledger.auth.create_user(owner, "cashier", secret, "employee")


def test_duplicate_user_and_unknown_role_are_rejected():
    ledger, owner = _ledger_with_owner()
    with pytest.raises(AuthorizationError):
        ledger.auth.create_user(owner, "owner", "Again#2024", "employee")
    with pytest.raises(AuthorizationError):
        ledger.auth.create_user(owner, "boss", "Boss#20245", "manager")


def test_hash_verify_helpers():
    stored = hash_secret("Owner#2024", rounds=1000)

    assert verify_secret(stored, "Owner#2024")
    assert not verify_secret(stored, "owner#2024")
    assert not verify_secret("tina001", "tina001")
