"""Tests for chart of accounts services."""

from datetime import date

import pytest

from conftest import BUSINESS_ID
from ledgersync.domain.chart import DEFAULT_CHART, ChartOfAccountsService
from ledgersync.domain.entities import AccountType, TransactionType
from ledgersync.domain.errors import ConflictError, NotFoundError, ValidationError


class TestInitializeChart:
    """Tests for default chart setup."""

    def test_creates_default_chart(self, temp_db):
        created = ChartOfAccountsService(temp_db).initialize_chart(BUSINESS_ID, created_by="user-1")

        assert created == len(DEFAULT_CHART)
        categories = temp_db.list_categories(BUSINESS_ID)
        assert [c.account_code for c in categories] == sorted(code for code, _, _ in DEFAULT_CHART)
        cash = temp_db.get_category_by_code(BUSINESS_ID, "1000")
        assert cash.name == "Cash"
        assert cash.account_type == AccountType.ASSET

    def test_second_run_creates_nothing(self, temp_db):
        service = ChartOfAccountsService(temp_db)
        service.initialize_chart(BUSINESS_ID)

        assert service.initialize_chart(BUSINESS_ID) == 0
        assert len(temp_db.list_categories(BUSINESS_ID)) == len(DEFAULT_CHART)

    def test_businesses_are_separate(self, temp_db):
        service = ChartOfAccountsService(temp_db)
        service.initialize_chart(BUSINESS_ID)

        assert service.initialize_chart("biz-2") == len(DEFAULT_CHART)


class TestCategoryService:
    """Tests for managing individual categories."""

    def test_create_with_explicit_code(self, chart, category_service):
        category_id = category_service.create_category(
            BUSINESS_ID, "Software", AccountType.EXPENSE, account_code="6350"
        )

        category = category_service.get_category(category_id)
        assert category.account_code == "6350"
        assert category.is_active

    def test_create_allocates_next_code(self, chart, category_service):
        category_id = category_service.create_category(BUSINESS_ID, "Consulting", AccountType.INCOME)

        assert category_service.get_category(category_id).account_code == "4101"

    def test_duplicate_code(self, chart, category_service):
        with pytest.raises(ConflictError):
            category_service.create_category(BUSINESS_ID, "Other Rent", AccountType.EXPENSE, account_code="6100")

    def test_code_in_other_type_band_rejected(self, chart, category_service):
        with pytest.raises(ValidationError, match="outside the INCOME range"):
            category_service.create_category(
                BUSINESS_ID, "Side income", AccountType.INCOME, account_code="6901"
            )

    def test_unbanded_default_code_allowed(self, category_service):
        """Codes the default chart places outside every band stay usable."""
        category_id = category_service.create_category(
            BUSINESS_ID, "Cost of Goods Sold", AccountType.EXPENSE, account_code="5000"
        )

        assert category_service.get_category(category_id).account_code == "5000"

    def test_allocation_skips_codes_of_other_types(self, temp_db, chart, category_service):
        temp_db.create_category(BUSINESS_ID, "6901", "Side income", AccountType.INCOME)

        category_id = category_service.create_category(BUSINESS_ID, "Software", AccountType.EXPENSE)

        assert category_service.get_category(category_id).account_code == "6902"

    @pytest.mark.parametrize("name,code", [("   ", None), ("Software", "63A0")])
    def test_invalid_input(self, chart, category_service, name, code):
        with pytest.raises(ValidationError):
            category_service.create_category(BUSINESS_ID, name, AccountType.EXPENSE, account_code=code)

    def test_unknown_parent(self, chart, category_service):
        with pytest.raises(NotFoundError):
            category_service.create_category(BUSINESS_ID, "Child", AccountType.EXPENSE, parent_id="missing")

    def test_get_by_code(self, chart, category_service):
        assert category_service.get_by_code(BUSINESS_ID, "3050").name == "Opening Balance Equity"

        with pytest.raises(NotFoundError):
            category_service.get_by_code(BUSINESS_ID, "9999")

    def test_list_by_type(self, chart, category_service):
        income = category_service.list_categories(BUSINESS_ID, account_type=AccountType.INCOME)

        assert [c.name for c in income] == ["Sales Revenue", "Other Revenue"]

    def test_remove_unused_category_deletes(self, temp_db, chart, category_service):
        assert category_service.remove_category(chart["6800"].id) == "deleted"
        assert temp_db.get_category(chart["6800"].id) is None

    def test_remove_used_category_deactivates(self, temp_db, chart, category_service, transaction_service):
        account_id = temp_db.create_account(BUSINESS_ID, "Checking")
        transaction_service.create_transaction(
            BUSINESS_ID,
            account_id,
            TransactionType.EXPENSE,
            "1200",
            date(2024, 3, 1),
            category_id=chart["6100"].id,
        )

        assert category_service.remove_category(chart["6100"].id) == "deactivated"
        assert not temp_db.get_category(chart["6100"].id).is_active
        active = category_service.list_categories(BUSINESS_ID)
        assert "6100" not in {c.account_code for c in active}
        everything = category_service.list_categories(BUSINESS_ID, active_only=False)
        assert "6100" in {c.account_code for c in everything}

    def test_remove_unknown_category(self, category_service):
        with pytest.raises(NotFoundError):
            category_service.remove_category("missing")
