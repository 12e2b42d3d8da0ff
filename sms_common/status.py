import enum


class MessageStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({MessageStatus.SENT, MessageStatus.FAILED})


def is_terminal(status: MessageStatus) -> bool:
    return MessageStatus(status) in TERMINAL_STATUSES


def can_transition(current: MessageStatus, target: MessageStatus) -> bool:
    # PENDING is the only state with outgoing edges.
    return MessageStatus(current) is MessageStatus.PENDING and MessageStatus(target) in TERMINAL_STATUSES
