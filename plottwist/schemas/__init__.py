"""
Pydantic 스키마 패키지
"""

from .auth import Token, RefreshTokenRequest
from .user import (
    UserBase,
    UserCreate,
    UserLogin,
    UserUpdate,
    UserResponse,
    UserSummary,
    UserSettingsResponse,
    UserSettingsUpdate,
)
from .story import (
    StoryCreate,
    StoryUpdate,
    StoryResponse,
    StoryWithTurn,
    StoryListResponse,
    SegmentCreate,
    SegmentResponse,
    ParticipantResponse,
    TurnResponse,
)
from .collaboration import (
    InviteRequest,
    InvitationResponse,
    InviteResult,
    InviteBatchResponse,
    InviteStatusItem,
    JoinRequestCreate,
    JoinRequestResponse,
    EditRequestCreate,
    EditRequestResponse,
)
from .media import StoryImageResponse, PrintOrderCreate, PrintOrderResponse
