from .user import User
from .session import Session
from .team import Team, TeamMembership, TeamRole, JoinAttempt
from .player import Player, Assessment
from .messaging import Conversation, ConversationType, Message, MessageReadReceipt

__all__ = [
    "User",
    "Session",
    "Team",
    "TeamMembership",
    "TeamRole",
    "JoinAttempt",
    "Player",
    "Assessment",
    "Conversation",
    "ConversationType",
    "Message",
    "MessageReadReceipt",
]
