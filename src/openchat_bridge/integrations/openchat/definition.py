"""Bot definition served to the platform during registration."""

from __future__ import annotations

from typing import Any

from .models import Permissions
from .runtime import Character

DEFAULT_DESCRIPTION = (
    "An AI agent capable of intelligent conversation and task execution on OpenChat"
)
CHAT_MESSAGE_MAX_LENGTH = 2000

_COMMAND_PERMISSIONS = Permissions.from_names(chat=("ReadChatSummary",), message=("Text",))
_AUTONOMOUS_PERMISSIONS = Permissions.from_names(
    chat=("ReactToMessages", "ReadMessages", "ReadChatSummary", "DeleteMessages"),
    message=("Text", "Image", "Video", "Audio", "File"),
)


def _command(name: str, description: str, params: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "name": name,
        "default_role": "Participant",
        "description": description,
        "permissions": _COMMAND_PERMISSIONS.to_dict(),
        "direct_messages": True,
        "params": params,
    }


def build_bot_definition(character: Character) -> dict[str, Any]:
    chat_params = [
        {
            "name": "message",
            "required": True,
            "description": "Your message to the agent",
            "placeholder": "Hello! How can you help me?",
            "param_type": {
                "StringParam": {
                    "min_length": 1,
                    "max_length": CHAT_MESSAGE_MAX_LENGTH,
                    "choices": [],
                    "multi_line": True,
                }
            },
        }
    ]
    return {
        "description": character.bio_line(DEFAULT_DESCRIPTION),
        "autonomous_config": {"permissions": _AUTONOMOUS_PERMISSIONS.to_dict()},
        "default_subscriptions": {
            "community": [],
            "chat": ["Message", "MembersJoined", "MembersLeft"],
        },
        "commands": [
            _command("chat", f"Chat with {character.name}", chat_params),
            _command("help", "Get information about available commands and capabilities", []),
            _command("info", f"Get information about {character.name}", []),
        ],
    }
