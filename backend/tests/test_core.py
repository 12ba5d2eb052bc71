"""
Tests for the role capability table, field encryption, log masking and the TTL store.
"""

import pytest

from app.core.encryption import PREFIX, FieldCipher
from app.core.logging import mask_email, mask_phone, mask_pii
from app.core.permissions import Action, Resource, Role, has_permission, is_admin
from app.core.security import create_access_token, decode_access_token, hash_password, verify_password
from app.infrastructure.ttl_store import MemoryTTLStore


def test_user_grants():
    assert has_permission(Role.USER, Action.CREATE_OWN, Resource.BOOKING)
    assert has_permission("user", "read:own", "notification")
    assert not has_permission(Role.USER, Action.READ_ANY, Resource.BOOKING)
    assert not has_permission(Role.USER, Action.READ_ANY, Resource.REPORT)


def test_admin_inherits_user_grants():
    assert has_permission(Role.ADMIN, Action.CREATE_OWN, Resource.BOOKING)
    assert has_permission(Role.ADMIN, Action.UPDATE_ANY, Resource.BOOKING)
    assert has_permission(Role.ADMIN, Action.READ_ANY, Resource.REPORT)
    assert not has_permission(Role.ADMIN, Action.UPDATE_ANY, Resource.ROLE)


def test_any_grant_implies_own_grant():
    # Admins hold read:any on users, so read:own on users follows
    assert has_permission(Role.ADMIN, Action.READ_OWN, Resource.USER)


def test_superadmin_manages_roles():
    assert has_permission(Role.SUPERADMIN, Action.UPDATE_ANY, Resource.ROLE)
    assert has_permission(Role.SUPERADMIN, Action.DELETE_ANY, Resource.ROOM)


def test_unknown_role_or_grant_is_denied():
    assert not has_permission("guest", Action.READ_OWN, Resource.BOOKING)
    assert not has_permission(None, Action.READ_OWN, Resource.BOOKING)
    assert not has_permission(Role.SUPERADMIN, "fly:any", Resource.BOOKING)


def test_is_admin():
    assert is_admin("admin")
    assert is_admin(Role.SUPERADMIN)
    assert not is_admin("user")
    assert not is_admin(None)


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", None)


def test_token_round_trip_and_tamper():
    token = create_access_token({"sub": "7", "role": "admin"})
    assert decode_access_token(token)["sub"] == "7"
    assert decode_access_token(token + "x") is None


def test_cipher_encrypts_with_prefix():
    cipher = FieldCipher("a passphrase that is not a fernet key")
    stored = cipher.encrypt("+63 912 345 6789")
    assert stored.startswith(PREFIX)
    assert "6789" not in stored
    assert cipher.decrypt(stored) == "+63 912 345 6789"


def test_cipher_passes_through_legacy_plaintext():
    cipher = FieldCipher("secret")
    assert cipher.decrypt("plain value") == "plain value"
    assert cipher.encrypt("") is None


def test_cipher_disabled_without_key():
    cipher = FieldCipher(None)
    assert not cipher.enabled
    assert cipher.encrypt("value") == "value"


@pytest.mark.asyncio
async def test_memory_ttl_store_expires():
    now = [100.0]
    store = MemoryTTLStore(clock=lambda: now[0])
    await store.set("signup:a@example.com", {"code": "123456"}, ttl_seconds=600)
    assert await store.get("signup:a@example.com") == {"code": "123456"}

    now[0] += 600
    assert await store.get("signup:a@example.com") is None


@pytest.mark.asyncio
async def test_memory_ttl_store_delete():
    store = MemoryTTLStore()
    await store.set("k", [1, 2], ttl_seconds=60)
    await store.delete("k")
    await store.delete("missing")
    assert await store.get("k") is None


def test_log_events_mask_guest_contact_details():
    event = mask_pii(None, "info", {
        "event": "email_sent",
        "to": "guest@example.com",
        "contact_number": "+63 917 555 1234",
        "user_id": 7,
    })
    assert event["to"] == "g***@example.com"
    assert event["contact_number"] == "***1234"
    assert event["user_id"] == 7


def test_masking_edge_cases():
    assert mask_email("not-an-address") == "***"
    assert mask_phone("12") == "***"
