"""Category resolution for sync runs.

Maps an aggregator category label to a chart-of-accounts node, allocating a
new node when none exists. Allocation runs against a :class:`CategoryCache`
loaded once per sync run, so codes handed out within a run never collide even
though nothing is written until the run commits.
"""

from dataclasses import dataclass, field
from typing import Optional

from ledgersync.database.base import Database
from ledgersync.database.models import new_id
from ledgersync.domain.entities import AccountType, Category, CategoryDraft
from ledgersync.domain.errors import AccountingSetupError, code_band_exhausted

# Inclusive numeric code band per account type
ACCOUNT_BANDS: dict[AccountType, tuple[int, int]] = {
    AccountType.ASSET: (1000, 1999),
    AccountType.LIABILITY: (2000, 2999),
    AccountType.EQUITY: (3000, 3999),
    AccountType.INCOME: (4000, 4999),
    AccountType.EXPENSE: (6000, 6999),
}

# Default-chart codes that sit outside every band
UNBANDED_CODES: dict[str, AccountType] = {
    "5000": AccountType.EXPENSE,
    "7000": AccountType.EXPENSE,
}


def band_type(code) -> Optional[AccountType]:
    """Return the account type whose band holds a numeric code, if any."""
    if not code or not str(code).isdigit():
        return None
    value = int(code)
    for account_type, (low, high) in ACCOUNT_BANDS.items():
        if low <= value <= high:
            return account_type
    return None


def code_allowed_for(code: str, account_type: AccountType) -> bool:
    """Return whether an explicit code may be used for the account type."""
    return band_type(code) == account_type or UNBANDED_CODES.get(code) == account_type


def highest_code_in_band(codes, account_type: AccountType) -> int:
    """Return the highest numeric code inside the type band, or band low - 1."""
    low, high = ACCOUNT_BANDS[account_type]
    highest = low - 1
    for code in codes:
        if not code or not str(code).isdigit():
            continue
        value = int(code)
        if low <= value <= high and value > highest:
            highest = value
    return highest


def next_account_code(codes, account_type: AccountType) -> str:
    """Return the next free code in the type band.

    Raises:
        AccountingSetupError: If the band is exhausted
    """
    _, high = ACCOUNT_BANDS[account_type]
    candidate = highest_code_in_band(codes, account_type) + 1
    if candidate > high:
        raise AccountingSetupError(code_band_exhausted(account_type.value, high))
    return str(candidate)


@dataclass
class CategoryCache:
    """Category lookup state owned by a single sync run.

    ``last_codes`` holds the highest code handed out so far per type and only
    ever moves forward. ``staged`` collects categories allocated during the run,
    in allocation order, for insertion at commit time.
    """

    business_id: str
    by_label: dict[tuple[AccountType, str], str] = field(default_factory=dict)
    last_codes: dict[AccountType, int] = field(default_factory=dict)
    staged: list[CategoryDraft] = field(default_factory=list)
    created_by: Optional[str] = None

    def lookup(self, account_type: AccountType, label: str) -> Optional[str]:
        return self.by_label.get((account_type, label))

    def forget(self, category_id: str) -> None:
        """Drop a staged category, e.g. after it lost an insert race."""
        self.staged = [draft for draft in self.staged if draft.id != category_id]
        for key, value in list(self.by_label.items()):
            if value == category_id:
                del self.by_label[key]


def build_category_cache(
    business_id: str, categories: list[Category], created_by: Optional[str] = None
) -> CategoryCache:
    """Build a cache from an already-loaded category list."""
    cache = CategoryCache(business_id=business_id, created_by=created_by)
    for category in categories:
        if category.is_active:
            cache.by_label.setdefault((category.account_type, category.name), category.id)

    # Counters consider every code in the band, inactive or of another type
    codes = [c.account_code for c in categories]
    for account_type in ACCOUNT_BANDS:
        cache.last_codes[account_type] = highest_code_in_band(codes, account_type)
    return cache


def load_category_cache(
    db: Database, business_id: str, created_by: Optional[str] = None
) -> CategoryCache:
    """Load the business's categories into a fresh cache with one query."""
    return build_category_cache(business_id, db.list_categories(business_id), created_by)


def resolve_category(
    cache: CategoryCache,
    account_type: AccountType,
    label: str,
    description: Optional[str] = None,
) -> str:
    """Return the category ID for a label, staging a new category on a miss.

    Args:
        cache: Cache of the current sync run; updated in place on a miss
        account_type: Type of the node to resolve (selects the code band)
        label: Category label as reported by the source
        description: Description for a newly staged category

    Returns:
        Existing or newly staged category ID

    Raises:
        AccountingSetupError: If the type band has no free code left
    """
    existing = cache.lookup(account_type, label)
    if existing is not None:
        return existing

    low, high = ACCOUNT_BANDS[account_type]
    code = cache.last_codes.get(account_type, low - 1) + 1
    if code > high:
        raise AccountingSetupError(code_band_exhausted(account_type.value, high))

    draft = CategoryDraft(
        id=new_id(),
        business_id=cache.business_id,
        account_code=str(code),
        name=label,
        account_type=account_type,
        description=description,
        created_by=cache.created_by,
    )
    cache.last_codes[account_type] = code
    cache.staged.append(draft)
    cache.by_label[(account_type, label)] = draft.id
    return draft.id
