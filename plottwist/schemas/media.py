"""
스토리 이미지 / 인쇄 주문 스키마
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal
from datetime import datetime
import uuid


class StoryImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    image_url: str
    caption: Optional[str] = None
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: datetime


class PrintOrderCreate(BaseModel):
    """인쇄 주문 요청 (가격은 서버가 계산)"""
    format: Literal["paperback", "hardcover", "ebook"]
    quantity: int = Field(1, ge=1, le=100)
    special_requests: Optional[str] = Field(None, max_length=2000)


class PrintOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: str
    story_id: uuid.UUID
    user_id: uuid.UUID
    format: str
    quantity: int
    special_requests: Optional[str] = None
    status: str
    total_price: int
    created_at: datetime
