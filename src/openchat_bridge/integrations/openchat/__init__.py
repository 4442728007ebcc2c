"""OpenChat bot integration."""

from .actions import (
    ActionResult,
    delete_openchat_messages,
    describe_installations,
    react_to_message,
    read_chat_history,
    send_openchat_message,
)
from .client import BotClient, BotClientFactory, ChatEventsCriteria, TextMessage
from .commands import CommandClientFactory, CommandHandler, CommandInvocation, CommandOutcome
from .config import OpenChatBotConfig, OpenChatBotConfigError
from .constants import INVALID_SCOPE_REASON, SIGNATURE_HEADER
from .context import ContextResolver, ResolutionRequest, ResolvedContext, default_strategies
from .directory import UserDirectory
from .doctor import openchat_doctor_checks
from .errors import (
    NotificationRejectedError,
    OpenChatAPIError,
    OpenChatConfigError,
    OpenChatError,
)
from .ids import (
    OPENCHAT_UUID_NAMESPACE,
    make_message_uuid,
    make_room_uuid,
    make_user_uuid,
)
from .locations import build_message_metadata, build_metadata_from_installation, location_key
from .messages import MessageManager
from .models import (
    ChannelIdentifier,
    CommunityIdentifier,
    DirectChatIdentifier,
    GroupChatIdentifier,
    Installation,
    InstallationRecord,
    MessageMetadata,
    Permissions,
    UserProfile,
)
from .notifications import NotificationRejection, PassthroughVerifier, handle_notification
from .principal import decode_principal, principal_from_text, principal_to_text
from .registry import InMemoryInstallationStore, InstallationRegistry, InstallationStore
from .router import EventRouter, is_invalid_scope_rejection
from .runtime import AgentMessage, AgentRuntime, Character
from .service import OpenChatBridgeService
from .transport import HttpRelayTransport, PlatformTransport

__all__ = [
    "ActionResult",
    "AgentMessage",
    "AgentRuntime",
    "BotClient",
    "BotClientFactory",
    "ChannelIdentifier",
    "Character",
    "ChatEventsCriteria",
    "CommandClientFactory",
    "CommandHandler",
    "CommandInvocation",
    "CommandOutcome",
    "CommunityIdentifier",
    "ContextResolver",
    "DirectChatIdentifier",
    "EventRouter",
    "GroupChatIdentifier",
    "HttpRelayTransport",
    "INVALID_SCOPE_REASON",
    "InMemoryInstallationStore",
    "Installation",
    "InstallationRecord",
    "InstallationRegistry",
    "InstallationStore",
    "MessageManager",
    "MessageMetadata",
    "NotificationRejectedError",
    "NotificationRejection",
    "OPENCHAT_UUID_NAMESPACE",
    "OpenChatAPIError",
    "OpenChatBotConfig",
    "OpenChatBotConfigError",
    "OpenChatBridgeService",
    "OpenChatConfigError",
    "OpenChatError",
    "PassthroughVerifier",
    "Permissions",
    "PlatformTransport",
    "ResolutionRequest",
    "ResolvedContext",
    "SIGNATURE_HEADER",
    "TextMessage",
    "UserDirectory",
    "UserProfile",
    "build_message_metadata",
    "build_metadata_from_installation",
    "decode_principal",
    "default_strategies",
    "delete_openchat_messages",
    "describe_installations",
    "handle_notification",
    "is_invalid_scope_rejection",
    "location_key",
    "make_message_uuid",
    "make_room_uuid",
    "make_user_uuid",
    "openchat_doctor_checks",
    "principal_from_text",
    "principal_to_text",
    "react_to_message",
    "read_chat_history",
    "send_openchat_message",
]
