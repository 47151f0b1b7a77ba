"""
Pydantic schemas for API requests
"""

from typing import Optional
from pydantic import BaseModel, Field


class CreateCustomerRequest(BaseModel):
    name: str
    email: str = ""
    phone: str = ""


class OpenAccountRequest(BaseModel):
    customer_id: int
    account_type: Optional[str] = Field(None, description="Account type (SAVINGS, CURRENT, ...)")
    initial_deposit: str = Field("0.00", description="Decimal amount as string")


class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class TransferRequest(BaseModel):
    from_account_id: int
    to_account_id: int
    amount: str = Field(..., description="Decimal amount as string")
