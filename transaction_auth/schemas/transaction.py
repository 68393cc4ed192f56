"""
Pydantic schemas for transaction operations.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from transaction_auth.models.enums import TransactionType, TransactionStatus
from transaction_auth.schemas.pagination import Pagination


class TransactionCreate(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=4)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    transaction_type: TransactionType = Field(alias="type")
    from_account: str = Field(min_length=5, max_length=50)
    to_account: str = Field(min_length=5, max_length=50)
    description: str | None = Field(default=None, max_length=500)

    model_config = {"populate_by_name": True}

    @field_validator("currency")
    @classmethod
    def currency_upper(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("currency must be a three-letter code")
        return v.upper()


class TransactionResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    owner_id: int
    amount: Decimal
    currency: str
    transaction_type: TransactionType
    status: TransactionStatus
    requires_approval: bool
    approved_by_id: int | None
    approved_at: datetime | None
    risk_score: int
    two_factor_verified: bool
    from_account: str
    to_account: str
    description: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TransactionPage(BaseModel):
    items: list[TransactionResponse]
    pagination: Pagination
