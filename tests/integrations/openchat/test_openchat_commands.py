from __future__ import annotations

import pytest

from openchat_bridge.integrations.openchat.client import BotClientFactory
from openchat_bridge.integrations.openchat.commands import (
    GENERATION_FAILED_TEXT,
    CommandHandler,
    CommandInvocation,
)
from openchat_bridge.integrations.openchat.definition import build_bot_definition
from openchat_bridge.integrations.openchat.models import (
    ChatActionScope,
    GroupChatIdentifier,
    InstallationRecord,
)
from openchat_bridge.integrations.openchat.registry import InstallationRegistry
from tests.fixtures.openchat_fakes import FakeRuntime, FakeTransport

GROUP = GroupChatIdentifier("g1")


def _invocation(transport: FakeTransport, name: str, **args) -> CommandInvocation:
    client = BotClientFactory(transport, max_attempts=1).create_client_for_scope(
        ChatActionScope(GROUP), "gw"
    )
    return CommandInvocation(
        command_name=name,
        client=client,
        args=args,
        chat_id=GROUP,
        message_id=500,
        initiator="user-9",
    )


@pytest.mark.anyio
async def test_chat_command_returns_placeholder_then_runs_agent() -> None:
    transport = FakeTransport()
    runtime = FakeRuntime(reply_text="Here is my answer")
    registry = InstallationRegistry()
    registry.record_installation(GROUP, InstallationRecord(api_gateway="gw"))
    handler = CommandHandler(runtime, registry)

    outcome = await handler.execute(_invocation(transport, "chat", message="What is 2+2?"))

    assert outcome.status_code == 200
    assert outcome.body["message"]["content"]["text"] == "Thinking..."
    assert outcome.body["message"]["finalised"] is False
    assert outcome.follow_up is not None
    assert transport.calls == []

    await outcome.follow_up()

    message = runtime.handled[0]
    assert message.text == "What is 2+2?"
    assert message.metadata["openchat"]["sender"] == "user-9"
    assert message.metadata["openchat"]["message_id"] == "500"
    assert transport.sent_texts() == ["Here is my answer"]


@pytest.mark.anyio
async def test_chat_command_without_installation_uses_generated_fallback() -> None:
    transport = FakeTransport()
    runtime = FakeRuntime(generated="Four.")
    handler = CommandHandler(runtime, InstallationRegistry())

    outcome = await handler.execute(_invocation(transport, "chat", message="2+2?"))
    await outcome.follow_up()

    assert runtime.handled == []
    assert "User: 2+2?" in runtime.prompts[0]
    assert transport.sent_texts() == ["Four."]


@pytest.mark.anyio
async def test_chat_command_generation_failure_sends_apology() -> None:
    transport = FakeTransport()
    runtime = FakeRuntime(generated=RuntimeError("offline"))
    handler = CommandHandler(runtime, InstallationRegistry())

    outcome = await handler.execute(_invocation(transport, "chat", message="hi"))
    await outcome.follow_up()

    assert transport.sent_texts() == [GENERATION_FAILED_TEXT]


@pytest.mark.anyio
async def test_chat_command_without_message_asks_for_one() -> None:
    transport = FakeTransport()
    handler = CommandHandler(FakeRuntime(), InstallationRegistry())

    outcome = await handler.execute(_invocation(transport, "chat"))
    await outcome.follow_up()

    assert transport.sent_texts() == ["Please provide a message."]


@pytest.mark.anyio
@pytest.mark.parametrize(("name", "needle"), [("help", "/chat <message>"), ("info", "math")])
async def test_help_and_info_reply_with_character_text(name: str, needle: str) -> None:
    transport = FakeTransport()
    handler = CommandHandler(FakeRuntime(name="Ada"), InstallationRegistry())

    outcome = await handler.execute(_invocation(transport, name))

    assert outcome.status_code == 200
    assert needle in outcome.body["message"]["content"]["text"]
    await outcome.follow_up()
    assert len(transport.sent_texts()) == 1
    assert "Ada" in transport.sent_texts()[0]


@pytest.mark.anyio
async def test_unknown_command_is_not_found() -> None:
    handler = CommandHandler(FakeRuntime(), InstallationRegistry())
    outcome = await handler.execute(_invocation(FakeTransport(), "dance"))
    assert outcome.status_code == 400
    assert outcome.body == {"error": "command_not_found"}
    assert outcome.follow_up is None


def test_bot_definition_lists_commands_and_permissions() -> None:
    definition = build_bot_definition(FakeRuntime(name="Ada").character)

    assert [command["name"] for command in definition["commands"]] == ["chat", "help", "info"]
    assert definition["description"] == "A helpful research assistant."
    assert definition["autonomous_config"]["permissions"]["message"] == 0b11111
    assert "Message" in definition["default_subscriptions"]["chat"]
