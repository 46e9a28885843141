"""Account domain service."""

from decimal import Decimal
from typing import Optional

from ledgersync.database.base import Database
from ledgersync.domain.entities import Account as AccountEntity
from ledgersync.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    category_not_found,
)
from ledgersync.domain.posting import PostingService, validate_balance


class AccountService:
    """Service for managing bank accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def link_account(
        self,
        business_id: str,
        name: str,
        user_id: str,
        currency: str = "USD",
        sync_token: Optional[str] = None,
        opening_balance=Decimal("0.00"),
        category_id: Optional[str] = None,
    ) -> str:
        """Create an account and seed its opening balance.

        The account and its opening posting are written together; if the
        posting fails, the account is not created either.

        Args:
            business_id: Owning business
            name: Account name, unique within the business
            user_id: Acting user
            currency: ISO currency code
            sync_token: Aggregator credential, if the account is linked
            opening_balance: Starting balance; zero posts nothing
            category_id: Designated cash/asset category; defaults to the generic cash account

        Returns:
            Account ID

        Raises:
            ValidationError: If the name, currency or balance is invalid
            ConflictError: If an account with the same name exists
            NotFoundError: If the category doesn't exist
            AccountingSetupError: If the chart of accounts lacks the posting categories
        """
        name = name.strip()
        if not name:
            raise ValidationError("Account name must not be empty")
        currency = currency.strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError(f"Invalid currency code '{currency}'")
        balance = validate_balance(opening_balance)

        for acc in self.db.list_accounts(business_id):
            if acc.name == name:
                raise ConflictError(f"Account with name '{name}' already exists")

        if category_id is not None:
            category = self.db.get_category(category_id)
            if category is None or category.business_id != business_id:
                raise NotFoundError(category_not_found(category_id))

        with self.db.atomic():
            account_id = self.db.create_account(
                business_id=business_id,
                name=name,
                currency=currency,
                sync_token=sync_token,
                category_id=category_id,
            )
            PostingService(self.db).create_opening_balance(account_id, balance, business_id, user_id)
        return account_id

    def get_account(self, account_id: str) -> Optional[AccountEntity]:
        """Get account by ID."""
        return self.db.get_account(account_id)

    def list_accounts(self, business_id: str) -> list[AccountEntity]:
        """List all accounts of a business."""
        return self.db.list_accounts(business_id)

    def resolve_account(self, business_id: str, account_identifier: str) -> AccountEntity:
        """Resolve an account by ID or name.

        Raises:
            NotFoundError: If no account matches
        """
        account = self.db.get_account(account_identifier)
        if account is not None and account.business_id == business_id:
            return account

        for acc in self.db.list_accounts(business_id):
            if acc.name == account_identifier:
                return acc

        raise NotFoundError(account_not_found(account_identifier))
