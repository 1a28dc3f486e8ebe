"""Pydantic schemas for orders.

Request schemas validate API input before it reaches the controller;
read schemas shape the customer and admin projections of an order.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .domain import MAX_TOPIC_LENGTH, MAX_WORD_COUNT, MIN_WORD_COUNT, Order, OrderStatus


class CreateOrderDTO(BaseModel):
    """Schema for creating an order.

    Accepts both snake_case and the camelCase names used by the web client
    (``wordCount``, ``customerEmail``).

    Attributes:
        topic: Subject of the text, stripped, 1-500 characters.
        word_count: Target length in [100, 5000].
        customer_email: Contact address; the controller validates the format.
    """

    model_config = ConfigDict(populate_by_name=True)

    topic: str = Field(min_length=1, max_length=MAX_TOPIC_LENGTH)
    word_count: int = Field(
        ge=MIN_WORD_COUNT,
        le=MAX_WORD_COUNT,
        validation_alias=AliasChoices("word_count", "wordCount"),
    )
    customer_email: str = Field(
        min_length=3,
        max_length=254,
        validation_alias=AliasChoices("customer_email", "customerEmail", "email"),
    )

    @field_validator("topic")
    @classmethod
    def strip_topic(cls, v: str) -> str:
        """Reject topics that are only whitespace."""
        v2 = v.strip()
        if not v2:
            raise ValueError("Topic must not be blank")
        return v2


class OrderListQuery(BaseModel):
    """Query parameters of the admin listing and export endpoints."""

    status: Optional[OrderStatus] = None
    search: Optional[str] = Field(default=None, max_length=200)
    date: Optional[Literal["today", "week", "month", "all"]] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100, validation_alias=AliasChoices("page_size", "limit"))
    anchor: Optional[int] = Field(default=None, ge=0)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        """Accept lower-case statuses and treat ``all`` as no filter."""
        if isinstance(v, str):
            if not v or v.lower() == "all":
                return None
            return v.upper()
        return v


class OrderPublicDTO(BaseModel):
    """What the customer status page sees.

    ``content`` is only present once the order is complete; failures show a
    coarse message and nothing else.
    """

    id: int
    status: OrderStatus
    status_message: str
    topic: str
    word_count: int
    price: int
    content: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderPublicDTO":
        return cls(
            id=order.id,
            status=order.status,
            status_message=order.status_message,
            topic=order.topic,
            word_count=order.word_count,
            price=order.price,
            content=order.content if order.status == OrderStatus.COMPLETE else None,
            created_at=order.created_at,
        )


class OrderAdminDTO(BaseModel):
    """Full order projection for administrators."""

    id: int
    status: OrderStatus
    topic: str
    word_count: int
    price: int
    api_cost: Optional[int] = None
    content: Optional[str] = None
    customer_email: str
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderAdminDTO":
        return cls(
            id=order.id,
            status=order.status,
            topic=order.topic,
            word_count=order.word_count,
            price=order.price,
            api_cost=order.api_cost,
            content=order.content,
            customer_email=order.customer_email,
            payment_reference=order.payment_reference,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
