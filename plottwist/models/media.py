"""
스토리 이미지 및 인쇄 주문 모델
"""

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, func
import uuid

from plottwist.core.database import Base, UUID


class StoryImage(Base):
    """스토리 이미지 모델"""
    __tablename__ = "story_images"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    caption = Column(Text)
    uploaded_by = Column(UUID(), ForeignKey("users.id"))
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())


class PrintOrder(Base):
    """인쇄 주문 모델"""
    __tablename__ = "print_orders"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    order_id = Column(String(20), unique=True, nullable=False)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    format = Column(String(20), nullable=False)  # paperback, hardcover, ebook
    quantity = Column(Integer, nullable=False, default=1)
    special_requests = Column(Text)
    status = Column(String(20), nullable=False, default="pending")
    total_price = Column(Integer, nullable=False)  # 센트 단위
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PrintOrder(order_id={self.order_id}, format={self.format}, total={self.total_price})>"
