"""Topic names published on the live-update channel.

A topic names a query shape; every write that can change that query's result
publishes the topic after it commits.
"""

from uuid import UUID


def incoming_requests(user_id: UUID) -> str:
    return f"buddy-requests:to:{user_id}"


def outgoing_requests(user_id: UUID) -> str:
    return f"buddy-requests:from:{user_id}"


def buddies(user_id: UUID) -> str:
    return f"buddies:{user_id}"


def user_conversations(user_id: UUID) -> str:
    return f"conversations:user:{user_id}"


def conversation_messages(conversation_id: str) -> str:
    return f"conversations:{conversation_id}:messages"
