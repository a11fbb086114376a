"""
모델 패키지
"""

from .user import User, UserSettings
from .story import Story, StoryParticipant, StorySegment, StoryTurn
from .collaboration import StoryInvitation, StoryJoinRequest, StoryEditRequest
from .media import StoryImage, PrintOrder

__all__ = [
    "User",
    "UserSettings",
    "Story",
    "StoryParticipant",
    "StorySegment",
    "StoryTurn",
    "StoryInvitation",
    "StoryJoinRequest",
    "StoryEditRequest",
    "StoryImage",
    "PrintOrder",
]
