"""
Customer Management Module

Customer profiles referenced by accounts. Profiles are immutable once
created; this module only creates, looks up and lists them.
"""

from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import NotFound
from .storage import StorageInterface
from .logging_config import get_logger, log_action

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Customer:
    """Customer profile"""
    id: int
    name: str
    email: str
    phone: str
    created_at: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        return cls(
            id=data["id"],
            name=data["name"],
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            created_at=data["created_at"],
        )

    def display_fields(self) -> Dict[str, str]:
        """Name, email and phone with blanks rendered as N/A"""
        return {
            "name": self.name or NOT_AVAILABLE,
            "email": self.email or NOT_AVAILABLE,
            "phone": self.phone or NOT_AVAILABLE,
        }


class CustomerManager:
    """Creates and looks up customer profiles"""

    def __init__(self, storage: StorageInterface, default_list_limit: int = 20):
        self.storage = storage
        self.default_list_limit = default_list_limit
        self.logger = get_logger("bank_system.customers")

    def create_customer(self, name: str, email: str = "", phone: str = "") -> Customer:
        """
        Create a new customer

        Args:
            name: Customer name (required)
            email: Contact email
            phone: Contact phone

        Returns:
            Created Customer with its assigned id

        Raises:
            ValueError: If name is blank
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Customer name is required")

        data = self.storage.insert_customer(name, (email or "").strip(), (phone or "").strip())
        customer = Customer.from_dict(data)

        log_action(
            self.logger, "info", "Customer created",
            action="create_customer", resource=f"customer:{customer.id}"
        )
        return customer

    def find_customer(self, customer_id: int) -> Optional[Customer]:
        """Get customer by ID, or None"""
        data = self.storage.load_customer(customer_id)
        return Customer.from_dict(data) if data else None

    def get_customer(self, customer_id: int) -> Customer:
        """Get customer by ID, raising NotFound when absent"""
        customer = self.find_customer(customer_id)
        if customer is None:
            raise NotFound("customer", customer_id)
        return customer

    def list_customers(self, limit: Optional[int] = None) -> List[Customer]:
        """List customers, newest first"""
        if limit is None:
            limit = self.default_list_limit
        return [Customer.from_dict(data) for data in self.storage.list_customers(limit)]
