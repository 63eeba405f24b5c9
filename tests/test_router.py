"""Tests for tier routing, middleware and config loading."""

import pytest

from privacy_gate import (
    CredentialPool,
    PIIType,
    PrivacyMiddleware,
    PrivacyRoute,
    PrivacyTier,
    create_middleware,
    load_config,
    load_from_yaml,
    process_messages_for_privacy,
    restore_response_pii,
    route_for,
)
from privacy_gate.router import credential_pool_id, should_log_to_audit_trail, should_store_on_server


# ── Routing ──────────────────────────────────────────────────────────

def test_route_table():
    assert route_for("community").to_dict() == {"store": "server", "anonymize": False}
    assert route_for("private").to_dict() == {
        "store": "server", "anonymize": True, "poolCredentials": True,
    }
    assert route_for("sovereign").to_dict() == {
        "store": "local", "anonymize": True, "encrypt": True,
    }


def test_route_deterministic():
    for tier in PrivacyTier:
        assert route_for(tier) == route_for(tier.value)
    assert route_for(PrivacyTier.PRIVATE) == PrivacyRoute(
        store="server", anonymize=True, pool_credentials=True,
    )


def test_unknown_tier():
    with pytest.raises(ValueError):
        route_for("premium")


def test_storage_and_audit_flags():
    assert should_store_on_server("community")
    assert should_store_on_server("private")
    assert not should_store_on_server("sovereign")
    assert all(should_log_to_audit_trail(t) for t in PrivacyTier)


def test_community_passes_through():
    messages = [{"role": "user", "content": "I'm a@b.com, SSN 123-45-6789"}]
    result = process_messages_for_privacy("community", messages)
    assert not result.blocked
    assert result.messages == messages
    assert result.placeholder_map == {}


def test_private_sanitizes():
    result = process_messages_for_privacy(
        PrivacyTier.PRIVATE,
        [{"role": "user", "content": "Contact me at a@b.com or 555-123-4567"}],
    )
    assert result.messages == [
        {"role": "user", "content": "Contact me at [EMAIL_1] or [PHONE_1]"},
    ]
    assert result.detected_types == [PIIType.EMAIL, PIIType.PHONE]
    assert restore_response_pii("I'll email [EMAIL_1] now", result.placeholder_map) == (
        "I'll email a@b.com now"
    )


def test_sovereign_blocks():
    messages = [{"role": "user", "content": "card 4111 1111 1111 1111"}]
    result = process_messages_for_privacy("sovereign", messages)
    assert result.blocked
    assert result.blocked_types == [PIIType.CREDIT_CARD]
    assert result.messages == messages
    assert result.route.store == "local"


def test_restore_response_empty_map():
    assert restore_response_pii("[EMAIL_1]", {}) == "[EMAIL_1]"


# ── Credential pool ──────────────────────────────────────────────────

def test_pool_round_robin():
    pool = CredentialPool(["a", "b", "c"])
    assert [pool.next_id() for _ in range(4)] == ["a", "b", "c", "a"]


def test_pool_only_for_private():
    pool = CredentialPool.default()
    assert credential_pool_id("private", pool) == "pool-0"
    assert credential_pool_id("community", pool) is None
    assert credential_pool_id("sovereign", pool) is None
    assert len(pool.ids) == 10


def test_pool_requires_ids():
    with pytest.raises(ValueError):
        CredentialPool([])


# ── Middleware ───────────────────────────────────────────────────────

def test_middleware_round_trip():
    mw = PrivacyMiddleware.create("private", pool=CredentialPool(["p1"]))
    routed = mw.pre_send([
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "mail bob@test.com"},
    ])
    assert not routed.blocked
    assert routed.messages[1]["content"] == "mail [EMAIL_1]"
    assert mw.post_receive("Sent to [EMAIL_1].") == "Sent to bob@test.com."
    assert mw.credential_id() == "p1"
    assert mw.stats["placeholders"] == 1


def test_middleware_stream_restorer():
    mw = PrivacyMiddleware.create(PrivacyTier.SOVEREIGN)
    mw.pre_send([{"role": "user", "content": "call 555-123-4567"}])
    restorer = mw.stream_restorer()
    out = restorer.feed("Calling [PHO") + restorer.feed("NE_1] now") + restorer.flush()
    assert out == "Calling 555-123-4567 now"


def test_middleware_audit_entry_has_types_only():
    mw = PrivacyMiddleware.create("private")
    mw.pre_send([{"role": "user", "content": "a@b.com"}])
    entry = mw.audit_entry(
        user_id="u1", provider="anthropic", model="claude-sonnet-4",
        tokens_input=12.9, tokens_output=float("nan"),
    )
    assert entry.pii_detected == [PIIType.EMAIL]
    assert entry.tokens_input == 12
    assert entry.tokens_output is None
    assert "a@b.com" not in repr(entry.to_dict())


def test_middleware_post_receive_before_pre_send():
    mw = PrivacyMiddleware.create("private")
    assert mw.post_receive("[EMAIL_1]") == "[EMAIL_1]"


# ── Config ───────────────────────────────────────────────────────────

def test_load_config_defaults():
    cfg = load_config({})
    assert cfg["enabled"] is True
    assert cfg["default_tier"] is PrivacyTier.COMMUNITY
    assert cfg["credential_pool"] == []
    assert cfg["audit_enabled"] is True


def test_load_config_nested():
    cfg = load_config({"privacy_gate": {
        "default_tier": "sovereign",
        "credential_pool": ["x"],
        "audit": {"enabled": False, "path": "/tmp/a.db"},
        "log_level": "debug",
    }})
    assert cfg["default_tier"] is PrivacyTier.SOVEREIGN
    assert cfg["credential_pool"] == ["x"]
    assert cfg["audit_enabled"] is False
    assert cfg["audit_path"] == "/tmp/a.db"
    assert cfg["log_level"] == "DEBUG"


def test_load_from_yaml(tmp_path):
    path = tmp_path / "gate.yaml"
    path.write_text(
        "privacy_gate:\n"
        "  default_tier: private\n"
        "  credential_pool:\n"
        "    - pool-a\n"
        "    - pool-b\n"
    )
    cfg = load_from_yaml(path)
    assert cfg["default_tier"] is PrivacyTier.PRIVATE
    assert cfg["credential_pool"] == ["pool-a", "pool-b"]


def test_create_middleware_uses_pool():
    mw = create_middleware({"default_tier": "private", "credential_pool": ["only"]})
    assert isinstance(mw, PrivacyMiddleware)
    assert mw.tier is PrivacyTier.PRIVATE
    assert mw.credential_id() == "only"


def test_create_middleware_tier_override():
    mw = create_middleware({"default_tier": "private"}, tier="sovereign")
    assert mw.tier is PrivacyTier.SOVEREIGN


def test_create_middleware_disabled():
    mw = create_middleware({"enabled": False, "default_tier": "private"})
    routed = mw.pre_send([{"role": "user", "content": "a@b.com"}])
    assert routed.messages == [{"role": "user", "content": "a@b.com"}]
    assert mw.post_receive("[EMAIL_1]") == "[EMAIL_1]"


def test_pool_rotation_survives_across_middlewares():
    config = {"default_tier": "private", "credential_pool": ["rot-a", "rot-b", "rot-c"]}
    ids = [create_middleware(config).credential_id() for _ in range(3)]
    assert ids == ["rot-a", "rot-b", "rot-c"]


def test_default_pool_is_shared_across_middlewares():
    ids = [PrivacyMiddleware.create("private").credential_id() for _ in range(3)]
    assert len(set(ids)) == 3
    assert PrivacyMiddleware.create("private").pool is CredentialPool.shared()
