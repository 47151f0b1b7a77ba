"""
Bank System HTTP API

Command surface over BankingService. Banking errors are returned as JSON
bodies of the form {"error": <kind>, "detail": <message>}.
"""

from typing import Optional

from fastapi import FastAPI, Depends, Request, status
from fastapi.responses import JSONResponse

from . import __version__
from .errors import BankingError, ErrorKind
from .ledger import TransactionRecord
from .money import format_amount
from .schemas import AmountRequest, CreateCustomerRequest, OpenAccountRequest, TransferRequest
from .service import BankingService


ERROR_STATUS = {
    ErrorKind.INVALID_AMOUNT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_409_CONFLICT,
    ErrorKind.PERSISTENCE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _record_to_dict(record: TransactionRecord) -> dict:
    return {
        "transaction_id": record.id,
        "account_id": record.account_id,
        "type": record.tx_type.value,
        "amount": format_amount(record.amount),
        "timestamp": record.timestamp.isoformat(),
        "remarks": record.remarks,
    }


def get_banking_service(request: Request) -> BankingService:
    return request.app.state.banking_service


def create_app(service: BankingService) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Bank System API",
        description="Ledger-backed accounts with atomic deposits, withdrawals and transfers",
        version=__version__,
    )
    app.state.banking_service = service

    @app.exception_handler(BankingError)
    async def banking_error_handler(request: Request, exc: BankingError):
        return JSONResponse(status_code=ERROR_STATUS[exc.kind], content=exc.to_dict())

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid_request", "detail": str(exc)}
        )

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "bank_system", "version": __version__}

    @app.post("/customers", status_code=status.HTTP_201_CREATED)
    def create_customer(
        request: CreateCustomerRequest,
        service: BankingService = Depends(get_banking_service)
    ):
        """Create a new customer"""
        customer = service.create_customer(request.name, request.email, request.phone)
        return {"customer_id": customer.id, "message": "Customer created successfully"}

    @app.get("/customers")
    def list_customers(
        limit: Optional[int] = None,
        service: BankingService = Depends(get_banking_service)
    ):
        """List customers, newest first"""
        customers = service.list_customers(limit)
        return {
            "customers": [
                {
                    "id": c.id,
                    "name": c.name,
                    "email": c.email,
                    "phone": c.phone,
                    "created_at": c.created_at.isoformat(),
                }
                for c in customers
            ]
        }

    @app.post("/accounts", status_code=status.HTTP_201_CREATED)
    def open_account(
        request: OpenAccountRequest,
        service: BankingService = Depends(get_banking_service)
    ):
        """Open an account with an optional initial deposit"""
        account = service.open_account(
            request.customer_id, request.account_type, request.initial_deposit
        )
        return {
            "account_id": account.id,
            "balance": format_amount(account.balance),
            "message": "Account created successfully"
        }

    @app.get("/accounts/{account_id}")
    def account_summary(
        account_id: int,
        service: BankingService = Depends(get_banking_service)
    ):
        """Account summary with the most recent transactions"""
        return service.account_summary(account_id).to_dict()

    @app.post("/accounts/{account_id}/deposit")
    def deposit(
        account_id: int,
        request: AmountRequest,
        service: BankingService = Depends(get_banking_service)
    ):
        """Make a deposit"""
        record = service.deposit(account_id, request.amount)
        return {"transaction": _record_to_dict(record), "message": "Deposit successful"}

    @app.post("/accounts/{account_id}/withdraw")
    def withdraw(
        account_id: int,
        request: AmountRequest,
        service: BankingService = Depends(get_banking_service)
    ):
        """Make a withdrawal"""
        record = service.withdraw(account_id, request.amount)
        return {"transaction": _record_to_dict(record), "message": "Withdrawal successful"}

    @app.post("/transfers")
    def transfer(
        request: TransferRequest,
        service: BankingService = Depends(get_banking_service)
    ):
        """Make a transfer between accounts"""
        debit, credit = service.transfer(
            request.from_account_id, request.to_account_id, request.amount
        )
        return {
            "transactions": [_record_to_dict(debit), _record_to_dict(credit)],
            "message": "Transfer successful"
        }

    return app
