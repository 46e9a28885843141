"""Chart of accounts services."""

import logging
from typing import Optional

from ledgersync.database.base import Database
from ledgersync.database.models import new_id
from ledgersync.domain.category_resolver import ACCOUNT_BANDS, code_allowed_for, next_account_code
from ledgersync.domain.entities import AccountType, Category, CategoryDraft
from ledgersync.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    category_code_not_found,
    category_not_found,
    code_outside_band,
    duplicate_account_code,
)

logger = logging.getLogger("ledgersync.chart")

# Codes with a fixed role in postings
ACCOUNT_CODES = {
    "CASH": "1000",
    "OPENING_BALANCE_EQUITY": "3050",
}

DEFAULT_CHART: list[tuple[str, str, AccountType]] = [
    # Assets
    ("1000", "Cash", AccountType.ASSET),
    ("1010", "Petty Cash", AccountType.ASSET),
    ("1100", "Accounts Receivable", AccountType.ASSET),
    ("1200", "Inventory", AccountType.ASSET),
    ("1300", "Prepaid Expenses", AccountType.ASSET),
    ("1400", "Fixed Assets", AccountType.ASSET),
    ("1410", "Accumulated Depreciation", AccountType.ASSET),
    ("1500", "Other Assets", AccountType.ASSET),
    # Liabilities
    ("2000", "Accounts Payable", AccountType.LIABILITY),
    ("2100", "Credit Cards Payable", AccountType.LIABILITY),
    ("2200", "Payroll Liabilities", AccountType.LIABILITY),
    ("2300", "Sales Tax Payable", AccountType.LIABILITY),
    ("2400", "Loans Payable", AccountType.LIABILITY),
    ("2500", "Other Current Liabilities", AccountType.LIABILITY),
    ("2600", "Long-Term Liabilities", AccountType.LIABILITY),
    # Equity
    ("3000", "Owner's Equity", AccountType.EQUITY),
    ("3050", "Opening Balance Equity", AccountType.EQUITY),
    ("3100", "Retained Earnings", AccountType.EQUITY),
    ("3200", "Drawings/Distributions", AccountType.EQUITY),
    ("3300", "Common Stock", AccountType.EQUITY),
    ("3400", "Additional Paid-in Capital", AccountType.EQUITY),
    # Income
    ("4000", "Sales Revenue", AccountType.INCOME),
    ("4100", "Other Revenue", AccountType.INCOME),
    # Expenses
    ("5000", "Cost of Goods Sold", AccountType.EXPENSE),
    ("6000", "Salaries and Wages", AccountType.EXPENSE),
    ("6100", "Rent", AccountType.EXPENSE),
    ("6200", "Utilities", AccountType.EXPENSE),
    ("6300", "Office Supplies", AccountType.EXPENSE),
    ("6400", "Advertising & Marketing", AccountType.EXPENSE),
    ("6500", "Travel & Meals", AccountType.EXPENSE),
    ("6600", "Professional Fees", AccountType.EXPENSE),
    ("6700", "Insurance", AccountType.EXPENSE),
    ("6800", "Depreciation", AccountType.EXPENSE),
    ("6900", "Miscellaneous", AccountType.EXPENSE),
    ("7000", "Tax Expense", AccountType.EXPENSE),
]


class ChartOfAccountsService:
    """Service for setting up a business chart of accounts."""

    def __init__(self, db: Database):
        self.db = db

    def initialize_chart(self, business_id: str, created_by: Optional[str] = None) -> int:
        """Create the default chart for a business.

        Codes that already exist are left untouched, so running this again
        is harmless.

        Returns:
            Number of categories created
        """
        drafts = [
            CategoryDraft(
                id=new_id(),
                business_id=business_id,
                account_code=code,
                name=name,
                account_type=account_type,
                created_by=created_by,
            )
            for code, name, account_type in DEFAULT_CHART
        ]
        created = self.db.insert_categories_skip_existing(drafts)
        logger.info("Initialized chart for business %s: %d categories created", business_id, created)
        return created


class CategoryService:
    """Service for managing chart-of-accounts categories."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(
        self,
        business_id: str,
        name: str,
        account_type: AccountType,
        account_code: Optional[str] = None,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Create a category.

        Args:
            business_id: Owning business
            name: Category name
            account_type: Account type
            account_code: Explicit numeric code; allocated from the type band if None
            parent_id: Optional parent category ID
            description: Optional description

        Returns:
            Category ID

        Raises:
            ValidationError: If the name or code is malformed, or the code is
                outside the type band
            ConflictError: If the code is already taken
            NotFoundError: If the parent doesn't exist
        """
        name = name.strip()
        if not name:
            raise ValidationError("Category name must not be empty")

        if parent_id is not None and self.db.get_category(parent_id) is None:
            raise NotFoundError(category_not_found(parent_id))

        if account_code is None:
            codes = self.db.list_category_codes(business_id)
            account_code = next_account_code(codes, account_type)
        else:
            account_code = account_code.strip()
            if not account_code.isdigit():
                raise ValidationError(f"Account code must be numeric, got '{account_code}'")
            if not code_allowed_for(account_code, account_type):
                low, high = ACCOUNT_BANDS[account_type]
                raise ValidationError(code_outside_band(account_code, account_type.value, low, high))
            if self.db.get_category_by_code(business_id, account_code) is not None:
                raise ConflictError(duplicate_account_code(account_code, business_id))

        return self.db.create_category(
            business_id=business_id,
            account_code=account_code,
            name=name,
            account_type=account_type,
            parent_id=parent_id,
            description=description,
        )

    def get_category(self, category_id: str) -> Optional[Category]:
        """Get category by ID."""
        return self.db.get_category(category_id)

    def get_by_code(self, business_id: str, account_code: str) -> Category:
        """Get category by account code.

        Raises:
            NotFoundError: If no category has the code
        """
        category = self.db.get_category_by_code(business_id, account_code)
        if category is None:
            raise NotFoundError(category_code_not_found(account_code))
        return category

    def list_categories(
        self,
        business_id: str,
        account_type: Optional[AccountType] = None,
        active_only: bool = True,
    ) -> list[Category]:
        """List categories ordered by account code."""
        return self.db.list_categories(business_id, account_type=account_type, active_only=active_only)

    def remove_category(self, category_id: str) -> str:
        """Remove a category.

        A category still referenced by transactions, journal lines, accounts
        or child categories is only deactivated; otherwise it is deleted.

        Returns:
            "deactivated" or "deleted"

        Raises:
            NotFoundError: If the category doesn't exist
        """
        if self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

        if self.db.count_category_references(category_id) > 0:
            self.db.deactivate_category(category_id)
            return "deactivated"

        self.db.delete_category(category_id)
        return "deleted"

