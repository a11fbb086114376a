"""
스토리 이미지 업로드 및 인쇄 주문 서비스
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging
import os
import secrets
import string
import uuid

from plottwist.core.config import settings
from plottwist.core.exceptions import ForbiddenError, ValidationFailedError
from plottwist.core.paths import get_upload_dir
from plottwist.models.media import StoryImage, PrintOrder
from plottwist.models.user import User
from plottwist.schemas.media import PrintOrderCreate
from plottwist.services import participant_service, story_service


logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/gif": {".gif"},
}

# 센트 단위 권당 가격, 실물 도서는 배송비 추가
PRINT_PRICES = {
    "paperback": 1499,
    "hardcover": 2499,
    "ebook": 999,
}
SHIPPING_PRICE = 499

_ORDER_ALPHABET = string.ascii_uppercase + string.digits


async def _ensure_participant(db: AsyncSession, story_id: uuid.UUID, user: User) -> None:
    await story_service.get_story_or_404(db, story_id)
    if not await participant_service.is_participant(db, story_id, user.id):
        raise ForbiddenError("이 스토리의 참여자가 아닙니다.")


def validate_image(filename: Optional[str], content_type: Optional[str], size: int) -> str:
    """이미지 형식/크기 검사 후 저장할 확장자를 반환한다"""
    extensions = ALLOWED_IMAGE_TYPES.get((content_type or "").lower())
    extension = os.path.splitext(filename or "")[1].lower()
    if extensions is None or extension not in extensions:
        raise ValidationFailedError("JPEG, PNG, GIF 이미지만 업로드할 수 있습니다.")
    if size == 0:
        raise ValidationFailedError("빈 파일입니다.")
    if size > settings.MAX_IMAGE_BYTES:
        raise ValidationFailedError(
            f"이미지 크기는 {settings.MAX_IMAGE_BYTES // (1024 * 1024)}MB를 넘을 수 없습니다."
        )
    return extension


async def save_story_image(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
    caption: Optional[str] = None,
) -> StoryImage:
    """참여자가 올린 이미지를 업로드 디렉토리에 저장하고 기록한다"""
    await _ensure_participant(db, story_id, user)
    extension = validate_image(filename, content_type, len(data))

    # 파일 이름 중복을 피하기 위해 UUID 사용
    saved_filename = f"{uuid.uuid4()}{extension}"
    file_path = os.path.join(get_upload_dir(), saved_filename)
    with open(file_path, "wb") as buffer:
        buffer.write(data)

    image = StoryImage(
        story_id=story_id,
        image_url=f"/static/{saved_filename}",
        caption=caption,
        uploaded_by=user.id,
    )
    db.add(image)
    await db.commit()
    await db.refresh(image)
    logger.info("스토리 이미지 업로드: story=%s file=%s", story_id, saved_filename)
    return image


async def list_story_images(db: AsyncSession, story_id: uuid.UUID) -> List[StoryImage]:
    result = await db.execute(
        select(StoryImage)
        .where(StoryImage.story_id == story_id)
        .order_by(StoryImage.uploaded_at.asc())
    )
    return list(result.scalars().all())


def calculate_total_price(book_format: str, quantity: int) -> int:
    """주문 총액 (센트)"""
    total = PRINT_PRICES[book_format] * quantity
    if book_format != "ebook":
        total += SHIPPING_PRICE
    return total


def generate_order_id() -> str:
    return "PT-" + "".join(secrets.choice(_ORDER_ALPHABET) for _ in range(6))


async def create_print_order(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    order_data: PrintOrderCreate,
) -> PrintOrder:
    """인쇄 주문 기록 (결제 없음)"""
    await _ensure_participant(db, story_id, user)
    order = PrintOrder(
        order_id=generate_order_id(),
        story_id=story_id,
        user_id=user.id,
        format=order_data.format,
        quantity=order_data.quantity,
        special_requests=order_data.special_requests,
        status="pending",
        total_price=calculate_total_price(order_data.format, order_data.quantity),
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    logger.info("인쇄 주문 생성: order=%s story=%s total=%s", order.order_id, story_id, order.total_price)
    return order


async def list_orders_for_user(db: AsyncSession, user: User) -> List[PrintOrder]:
    result = await db.execute(
        select(PrintOrder)
        .where(PrintOrder.user_id == user.id)
        .order_by(PrintOrder.created_at.desc())
    )
    return list(result.scalars().all())
