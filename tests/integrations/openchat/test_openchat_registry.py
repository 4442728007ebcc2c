from __future__ import annotations

import logging

import pytest

from openchat_bridge.integrations.openchat.locations import location_key
from openchat_bridge.integrations.openchat.models import (
    ChannelIdentifier,
    ChatActionScope,
    CommunityActionScope,
    CommunityIdentifier,
    DirectChatIdentifier,
    GroupChatIdentifier,
    InstallationRecord,
    Permissions,
)
from openchat_bridge.integrations.openchat.registry import InstallationRegistry


def _record(message_mask: int = 0, gateway: str = "gw") -> InstallationRecord:
    return InstallationRecord(
        api_gateway=gateway,
        granted_autonomous_permissions=Permissions(message=message_mask),
    )


def test_location_keys_carry_variant_prefixes() -> None:
    assert location_key(GroupChatIdentifier("abc")) == "group:abc"
    assert location_key(DirectChatIdentifier("abc")) == "direct:abc"
    assert location_key(CommunityIdentifier("abc")) == "community:abc"


def test_record_installation_stores_scope_and_logs(
    caplog: pytest.LogCaptureFixture,
) -> None:
    registry = InstallationRegistry()
    caplog.set_level(logging.INFO)

    installation = registry.record_installation(GroupChatIdentifier("42"), _record(31))

    assert isinstance(installation.scope, ChatActionScope)
    assert registry.get("group:42") is installation
    assert "openchat.install.recorded" in caplog.text
    assert '"message_permission_mask": 31' in caplog.text


def test_community_installation_gets_community_scope() -> None:
    registry = InstallationRegistry()
    installation = registry.record_installation(CommunityIdentifier("c1"), _record())
    assert isinstance(installation.scope, CommunityActionScope)
    assert installation.scope.community == CommunityIdentifier("c1")


def test_reinstall_replaces_grants_in_place() -> None:
    registry = InstallationRegistry()
    registry.record_installation(GroupChatIdentifier("a"), _record(1))
    registry.record_installation(GroupChatIdentifier("b"), _record(1))
    registry.record_installation(GroupChatIdentifier("a"), _record(3))

    assert len(registry) == 2
    assert registry.get("group:a").record.granted_autonomous_permissions.message == 3
    assert list(registry.get_installations()) == ["group:a", "group:b"]


def test_uninstall_removes_and_reports() -> None:
    registry = InstallationRegistry()
    registry.record_installation(DirectChatIdentifier("u"), _record())

    assert registry.record_uninstallation(DirectChatIdentifier("u")) is True
    assert registry.record_uninstallation(DirectChatIdentifier("u")) is False
    assert registry.get("direct:u") is None
    assert len(registry) == 0


def test_installations_view_is_live() -> None:
    registry = InstallationRegistry()
    view = registry.get_installations()
    assert len(view) == 0

    registry.record_installation(GroupChatIdentifier("g"), _record())
    assert "group:g" in view
    assert view["group:g"].record.api_gateway == "gw"

    registry.record_uninstallation(GroupChatIdentifier("g"))
    assert "group:g" not in view
    with pytest.raises(KeyError):
        view["group:g"]


def test_lookup_helpers() -> None:
    registry = InstallationRegistry()
    community = registry.record_installation(CommunityIdentifier("c"), _record())
    group = registry.record_installation(GroupChatIdentifier("g"), _record())

    assert registry.get("") is None
    assert registry.get_by_chat_id(GroupChatIdentifier("g")) is group
    assert registry.get_by_chat_id(ChannelIdentifier("c", 5)) is community
    assert registry.first() == ("community:c", community)
    assert InstallationRegistry().first() is None
