"""
Schema migration.

Two kinds of migration exist:

* The generation change: six V1 fragments are consolidated into one V2
  document (``Migrator.migrate``).
* Field migrations inside V2: an ordered pipeline of pure, idempotent steps,
  each identified by the module revision pair it upgrades between. Every step
  decides from the data itself whether it applies, so the pipeline can run on
  every load and on every import without touching data that is already current.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from lifeos_storage.domain.defaults import (
    DEFAULT_CURRENCY,
    DEFAULT_INCOME_CATEGORIES,
    INCOME_TYPE_TO_CATEGORY,
    create_default_finance_data,
    create_default_freelancer_profile,
    create_default_module,
    create_default_programming_data,
    merge_with_defaults,
)
from lifeos_storage.domain.schema import (
    V2_VERSION,
    AppData,
    StoredDocument,
    TransactionNature,
)
from lifeos_storage.services.legacy_reader import LegacyFragmentSet
from lifeos_storage.utils.hashing import generate_id
from lifeos_storage.utils.timestamps import Clock, clamp_created, format_timestamp, utc_now

logger = logging.getLogger(__name__)

VALID_PROJECT_STATUSES = frozenset({"todo", "inProgress", "done"})


@dataclass(frozen=True)
class MigrationContext:
    """Inputs shared by field migration steps."""

    timestamp: str


@dataclass(frozen=True)
class MigrationStep:
    """
    A single field migration on one module.

    ``needs`` must return False for data the step has already been applied to,
    which is what makes re-running the pipeline safe.
    """

    module: str
    from_version: str
    to_version: str
    description: str
    needs: Callable[[dict[str, Any]], bool]
    apply: Callable[[dict[str, Any], MigrationContext], dict[str, Any]]

    @property
    def identifier(self) -> tuple[str, str]:
        return (f"{self.module}@{self.from_version}", f"{self.module}@{self.to_version}")

    def __str__(self) -> str:
        return f"{self.module} {self.from_version} -> {self.to_version} ({self.description})"


def _records(module: dict[str, Any], name: str) -> list[Any]:
    value = module.get(name)
    return value if isinstance(value, list) else []


def _amount(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


# ---------------------------------------------------------------------------
# finance 1.0.0 -> 2.0.0: multi-account support
# ---------------------------------------------------------------------------


def needs_account_migration(finance: dict[str, Any]) -> bool:
    """Check for transactions or installments not linked to any account."""
    unlinked_transactions = any(
        isinstance(record, dict) and not record.get("accountId")
        for name in ("incomes", "expenses")
        for record in _records(finance, name)
    )
    unlinked_installments = any(
        isinstance(record, dict) and not record.get("linkedAccountId")
        for record in _records(finance, "installments")
    )
    return unlinked_transactions or unlinked_installments


def _default_account_id(accounts: list[Any]) -> str | None:
    candidates = [a for a in accounts if isinstance(a, dict) and a.get("id")]
    for account in candidates:
        if account.get("isDefault"):
            return account["id"]
    return candidates[0]["id"] if candidates else None


def _create_main_account(finance: dict[str, Any], context: MigrationContext) -> dict[str, Any]:
    settings = finance.get("settings") if isinstance(finance.get("settings"), dict) else {}
    received = sum(
        _amount(income.get("amount"))
        for income in _records(finance, "incomes")
        if isinstance(income, dict)
        and income.get("status") == "received"
        and income.get("actualDate")
    )
    spent = sum(
        _amount(expense.get("amount"))
        for expense in _records(finance, "expenses")
        if isinstance(expense, dict)
    )
    return {
        "id": generate_id("account", "main-cash", prefix="acc"),
        "name": "Main Cash",
        "type": "cash",
        "balance": received - spent,
        "initialBalance": 0,
        "color": "#10b981",
        "icon": "💵",
        "currency": settings.get("defaultCurrency") or DEFAULT_CURRENCY,
        "isDefault": True,
        "isActive": True,
        "order": 1,
        "notes": "Migrated from previous version",
        "createdAt": context.timestamp,
        "updatedAt": context.timestamp,
    }


def migrate_finance_accounts(
    finance: dict[str, Any], context: MigrationContext
) -> dict[str, Any]:
    """
    Link every income, expense and installment to an account.

    Uses the default account when one exists, otherwise creates a "Main Cash"
    account whose balance is received income minus expenses.
    """
    accounts = list(_records(finance, "accounts"))
    account_id = _default_account_id(accounts)
    if account_id is None:
        account = _create_main_account(finance, context)
        accounts.append(account)
        account_id = account["id"]

    def link_transaction(record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        return {
            **record,
            "accountId": record.get("accountId") or account_id,
            "tags": record.get("tags") or [],
            "isRecurring": bool(record.get("isRecurring", False)),
        }

    def link_installment(record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        return {
            **record,
            "linkedAccountId": record.get("linkedAccountId") or account_id,
            "payments": record.get("payments") or [],
        }

    def complete_goal(record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        return {
            **record,
            "priority": record.get("priority") or "medium",
            "milestones": record.get("milestones") or [],
            "contributions": record.get("contributions") or [],
        }

    return {
        **finance,
        "accounts": accounts,
        "transfers": _records(finance, "transfers"),
        "incomes": [link_transaction(r) for r in _records(finance, "incomes")],
        "expenses": [link_transaction(r) for r in _records(finance, "expenses")],
        "installments": [link_installment(r) for r in _records(finance, "installments")],
        "goals": [complete_goal(r) for r in _records(finance, "goals")],
        "version": V2_VERSION,
    }


# ---------------------------------------------------------------------------
# finance 2.0.0 -> 2.1.0: income type strings become category references
# ---------------------------------------------------------------------------


def normalize_nature(value: Any) -> str:
    """Return the value if it is a valid TransactionNature, else "variable"."""
    if isinstance(value, str) and value in TransactionNature.values():
        return value
    return TransactionNature.VARIABLE.value


def legacy_category_name(income_type: Any) -> str:
    """Map a legacy free-text income type to a category name."""
    text = income_type.strip().lower() if isinstance(income_type, str) else ""
    if not text:
        text = "other"
    return INCOME_TYPE_TO_CATEGORY.get(text) or text[:1].upper() + text[1:]


def needs_income_category_migration(finance: dict[str, Any]) -> bool:
    """Check for incomes without a category reference or expenses with a bad nature."""
    uncategorized = any(
        isinstance(income, dict) and not income.get("categoryId")
        for income in _records(finance, "incomes")
    )
    bad_expense_nature = any(
        isinstance(expense, dict) and expense.get("type") not in TransactionNature.values()
        for expense in _records(finance, "expenses")
    )
    return uncategorized or bad_expense_nature


def _income_category(
    name: str,
    order: int,
    context: MigrationContext,
    *,
    is_default: bool,
    name_ar: str,
    icon: str,
    color: str,
) -> dict[str, Any]:
    return {
        "id": generate_id("income-category", name.lower(), prefix="inc"),
        "name": name,
        "nameAr": name_ar,
        "icon": icon,
        "color": color,
        "isDefault": is_default,
        "order": order,
        "createdAt": context.timestamp,
    }


def default_income_categories(context: MigrationContext) -> list[dict[str, Any]]:
    """Build the seeded income categories."""
    return [
        _income_category(
            name, order, context, is_default=True, name_ar=name_ar, icon=icon, color=color
        )
        for order, (name, name_ar, icon, color) in enumerate(DEFAULT_INCOME_CATEGORIES, start=1)
    ]


def migrate_income_categories(
    finance: dict[str, Any], context: MigrationContext
) -> dict[str, Any]:
    """
    Replace legacy income ``type`` strings with category references.

    The old free-text type picks the category (creating one for custom types)
    and ``type`` is rewritten as a TransactionNature, defaulting to "variable".
    """
    categories = [c for c in _records(finance, "incomeCategories") if isinstance(c, dict)]
    if not categories:
        categories = default_income_categories(context)

    def find_category(name: str) -> dict[str, Any] | None:
        wanted = name.lower()
        for category in categories:
            if str(category.get("name", "")).lower() == wanted:
                return category
        return None

    incomes = _records(finance, "incomes")
    for income in incomes:
        if isinstance(income, dict) and not income.get("categoryId"):
            name = legacy_category_name(income.get("type"))
            if find_category(name) is None:
                categories.append(
                    _income_category(
                        name,
                        len(categories) + 1,
                        context,
                        is_default=False,
                        name_ar=name,
                        icon="💵",
                        color="#64748b",
                    )
                )

    fallback = find_category("Other") or (categories[0] if categories else None)

    def migrate_income(income: Any) -> Any:
        if not isinstance(income, dict):
            return income
        category_id = income.get("categoryId")
        if not category_id:
            category = find_category(legacy_category_name(income.get("type"))) or fallback
            category_id = category.get("id") if category else None
        return {
            **income,
            "categoryId": category_id,
            "type": normalize_nature(income.get("type")),
            "isRecurring": bool(income.get("isRecurring", False)),
            "tags": income.get("tags") or [],
        }

    def migrate_expense(expense: Any) -> Any:
        if not isinstance(expense, dict):
            return expense
        return {**expense, "type": normalize_nature(expense.get("type"))}

    return {
        **finance,
        "incomeCategories": categories,
        "incomes": [migrate_income(i) for i in incomes],
        "expenses": [migrate_expense(e) for e in _records(finance, "expenses")],
    }


# ---------------------------------------------------------------------------
# freelancing 1.0.0 -> 1.1.0: project status normalization
# ---------------------------------------------------------------------------


def needs_project_status_migration(freelancing: dict[str, Any]) -> bool:
    """Check for projects whose status is not a kanban column."""
    return any(
        isinstance(project, dict) and project.get("status") not in VALID_PROJECT_STATUSES
        for project in _records(freelancing, "projects")
    )


def migrate_project_statuses(
    freelancing: dict[str, Any], context: MigrationContext
) -> dict[str, Any]:
    """Reset unknown project statuses to "todo"."""

    def fix(project: Any) -> Any:
        if isinstance(project, dict) and project.get("status") not in VALID_PROJECT_STATUSES:
            logger.info(
                f"Fixing project {project.get('name')!r} with invalid status "
                f"{project.get('status')!r}"
            )
            return {**project, "status": "todo"}
        return project

    return {**freelancing, "projects": [fix(p) for p in _records(freelancing, "projects")]}


FIELD_MIGRATIONS: tuple[MigrationStep, ...] = (
    MigrationStep(
        module="finance",
        from_version="1.0.0",
        to_version="2.0.0",
        description="multi-account support",
        needs=needs_account_migration,
        apply=migrate_finance_accounts,
    ),
    MigrationStep(
        module="finance",
        from_version="2.0.0",
        to_version="2.1.0",
        description="income categories",
        needs=needs_income_category_migration,
        apply=migrate_income_categories,
    ),
    MigrationStep(
        module="freelancing",
        from_version="1.0.0",
        to_version="1.1.0",
        description="project status normalization",
        needs=needs_project_status_migration,
        apply=migrate_project_statuses,
    ),
)


class Migrator:
    """
    Pure transformation of stored data into the current V2 shape.

    Performs no storage I/O; the clock is injected so results are
    deterministic for a given input and time.
    """

    def __init__(
        self, clock: Clock = utc_now, steps: Sequence[MigrationStep] = FIELD_MIGRATIONS
    ) -> None:
        self.clock = clock
        self.steps = tuple(steps)

    def consolidate(self, fragments: LegacyFragmentSet) -> AppData:
        """
        Assign each V1 fragment to its V2 module slot.

        Concepts that only exist in the main bundle (profile, applications,
        settings, ...) are taken from it when present and well-typed, else
        from the module defaults.

        Args:
            fragments: Parsed legacy fragments.

        Returns:
            Complete AppData, merged with defaults.
        """
        main = fragments.main if isinstance(fragments.main, dict) else {}

        def from_main(name: str) -> dict[str, Any]:
            value = main.get(name)
            return value if isinstance(value, dict) else create_default_module(name)

        freelancing_main = main.get("freelancing")
        if not isinstance(freelancing_main, dict):
            freelancing_main = {}
        profile = freelancing_main.get("profile")
        applications = freelancing_main.get("applications")

        def as_list(value: Any) -> list[Any]:
            return value if isinstance(value, list) else []

        data = {
            "university": from_main("university"),
            "freelancing": {
                "profile": profile
                if isinstance(profile, dict)
                else create_default_freelancer_profile(),
                "applications": as_list(applications),
                "projects": as_list(fragments.freelancing_projects),
                "projectTasks": as_list(fragments.freelancing_project_tasks),
                "standaloneTasks": as_list(fragments.freelancing_standalone_tasks),
            },
            "programming": fragments.programming
            if isinstance(fragments.programming, dict)
            else create_default_programming_data(),
            "finance": fragments.finance
            if isinstance(fragments.finance, dict)
            else create_default_finance_data(),
            "home": from_main("home"),
            "misc": from_main("misc"),
            "settings": from_main("settings"),
            "notificationSettings": from_main("notificationSettings"),
        }
        return merge_with_defaults(data)

    def apply_field_migrations(
        self, data: AppData, timestamp: str | None = None
    ) -> tuple[AppData, list[MigrationStep]]:
        """
        Run every pending field migration in order.

        A step that fails leaves its module as it was and is logged; the
        remaining steps still run.

        Args:
            data: Complete AppData (as produced by merge-with-defaults).
            timestamp: Time stamped on records the steps create.

        Returns:
            Tuple of (migrated data, steps that were applied).
        """
        context = MigrationContext(timestamp=timestamp or format_timestamp(self.clock()))
        result = dict(data)
        applied: list[MigrationStep] = []

        for step in self.steps:
            module = result.get(step.module)
            if not isinstance(module, dict):
                continue
            try:
                if not step.needs(module):
                    continue
                result[step.module] = step.apply(module, context)
            except Exception as e:
                logger.error(f"Field migration {step} failed: {e}")
                continue
            applied.append(step)
            logger.info(f"Applied field migration {step}")

        return result, applied

    def migrate(self, fragments: LegacyFragmentSet) -> StoredDocument:
        """
        Migrate V1 fragments into a V2 document.

        Args:
            fragments: Parsed legacy fragments.

        Returns:
            New V2 document stamped with the current time.
        """
        now = format_timestamp(self.clock())
        data, _ = self.apply_field_migrations(self.consolidate(fragments), now)
        return StoredDocument(version=V2_VERSION, created=now, last_modified=now, data=data)

    def upgrade(self, document: StoredDocument) -> tuple[StoredDocument, bool]:
        """
        Bring an existing V2 document up to date, preserving ``created``
        unless it lies after the time of this upgrade.

        Returns:
            Tuple of (document, whether anything changed).
        """
        now_dt = self.clock()
        now = format_timestamp(now_dt)
        data, applied = self.apply_field_migrations(merge_with_defaults(document.data), now)
        if not applied:
            return document.model_copy(update={"data": data}), False

        upgraded = StoredDocument(
            version=V2_VERSION,
            created=clamp_created(document.created, now_dt),
            last_modified=now,
            data=data,
        )
        return upgraded, True
