from __future__ import annotations

OPENCHAT_SOURCE = "openchat"

# Notification delivery.
SIGNATURE_HEADER = "x-oc-signature"
COMMAND_JWT_HEADER = "x-oc-jwt"
INVALID_SCOPE_REASON = "Invalid scope"

# Hosts that already carry the production root key; anything else needs a fetch.
MAINNET_HOST_MARKERS = ("icp-api.io", "ic0.app")

DEFAULT_BOT_PORT = 3000
DEFAULT_DIRECTORY_CACHE_TTL_SECONDS = 15 * 60

USERS_QUERY_METHOD = "users_msgpack"
SEND_MESSAGE_METHOD = "bot_send_message_msgpack"
CHAT_SUMMARY_METHOD = "bot_chat_summary_msgpack"
CHAT_EVENTS_METHOD = "bot_chat_events_msgpack"
ADD_REACTION_METHOD = "bot_add_reaction_msgpack"
DELETE_MESSAGES_METHOD = "bot_delete_messages_msgpack"

HISTORY_MIN_LIMIT = 1
HISTORY_MAX_LIMIT = 50
HISTORY_DEFAULT_LIMIT = 10
DEFAULT_REACTION = "👍"

# Bit positions follow the order of these tuples.
CHAT_PERMISSIONS = (
    "ChangeRoles",
    "UpdateGroup",
    "AddMembers",
    "InviteUsers",
    "RemoveMembers",
    "DeleteMessages",
    "PinMessages",
    "ReactToMessages",
    "MentionAllMembers",
    "StartVideoCall",
    "ReadMessages",
    "ReadMembership",
    "ReadChatSummary",
)
COMMUNITY_PERMISSIONS = (
    "ChangeRoles",
    "UpdateDetails",
    "InviteUsers",
    "RemoveMembers",
    "CreatePublicChannel",
    "CreatePrivateChannel",
    "ManageUserGroups",
    "ReadSummary",
    "ReadMembership",
)
MESSAGE_PERMISSIONS = (
    "Text",
    "Image",
    "Video",
    "Audio",
    "File",
    "Poll",
    "Crypto",
    "Giphy",
    "Prize",
    "P2pSwap",
    "VideoCall",
)
