"""Unit tests for V1 consolidation and the field migration pipeline."""

from support import FIXED_ISO, fixed_clock

from lifeos_storage.domain.defaults import create_default_app_data, merge_with_defaults
from lifeos_storage.domain.schema import V2_VERSION
from lifeos_storage.services.legacy_reader import LegacyFragmentSet
from lifeos_storage.services.migration import (
    FIELD_MIGRATIONS,
    MigrationStep,
    Migrator,
    legacy_category_name,
    normalize_nature,
)
from lifeos_storage.utils.hashing import generate_id

MAIN_CASH_ID = generate_id("account", "main-cash", prefix="acc")
SALARY_CATEGORY_ID = generate_id("income-category", "salary", prefix="inc")


def _category_by_id(finance: dict, category_id: str) -> dict | None:
    for category in finance["incomeCategories"]:
        if category["id"] == category_id:
            return category
    return None


def test_consolidate_maps_fragments_to_modules() -> None:
    """Test that each V1 fragment lands in its V2 module slot."""
    fragments = LegacyFragmentSet(
        main={
            "settings": {"userName": "Ada"},
            "freelancing": {"applications": [{"id": "a1"}]},
        },
        freelancing_projects=[{"id": "p1", "status": "todo"}],
        freelancing_project_tasks=[{"id": "t1"}],
        programming={"skills": [{"id": "k1"}]},
    )

    data = Migrator(clock=fixed_clock).consolidate(fragments)

    if data["settings"]["userName"] != "Ada":
        raise AssertionError("userName from the main bundle was lost")

    if data["settings"]["theme"] != "dark":
        raise AssertionError("Missing settings field was not backfilled")

    freelancing = data["freelancing"]
    if freelancing["applications"] != [{"id": "a1"}]:
        raise AssertionError("Applications from the main bundle were lost")

    if freelancing["projects"] != [{"id": "p1", "status": "todo"}]:
        raise AssertionError("Projects fragment was not consolidated")

    if freelancing["projectTasks"] != [{"id": "t1"}]:
        raise AssertionError("Project tasks fragment was not consolidated")

    if data["programming"]["skills"] != [{"id": "k1"}] or data["programming"]["tools"] != []:
        raise AssertionError(f"Unexpected programming module: {data['programming']}")

    if data["finance"] != create_default_app_data()["finance"]:
        raise AssertionError("Missing finance fragment should yield the finance default")


def test_migrate_empty_fragments_yields_defaults() -> None:
    """Test that migrating nothing yields the default document."""
    document = Migrator(clock=fixed_clock).migrate(LegacyFragmentSet())

    if document.data != create_default_app_data():
        raise AssertionError("Empty V1 storage should migrate to defaults")

    if document.version != V2_VERSION:
        raise AssertionError(f"Unexpected version {document.version}")

    if document.created != FIXED_ISO or document.last_modified != FIXED_ISO:
        raise AssertionError(f"Unexpected timestamps: {document.created}, {document.last_modified}")


def test_migrate_tolerates_malformed_fragments() -> None:
    """Test that malformed fragment content never makes migration fail."""
    fragments = LegacyFragmentSet(
        main={"settings": "oops", "freelancing": [], "home": None},
        freelancing_projects=[1, None, "x"],
        programming={},
        finance={"incomes": "not a list", "expenses": [None, 3]},
    )

    document = Migrator(clock=fixed_clock).migrate(fragments)

    if document.data["settings"] != create_default_app_data()["settings"]:
        raise AssertionError("Wrongly typed settings should fall back to the default")

    if document.data["freelancing"]["projects"] != [1, None, "x"]:
        raise AssertionError("Unrecognized project entries should be carried over untouched")


def test_migrate_is_deterministic() -> None:
    """Test that the same fragments and clock produce the same document."""
    fragments = LegacyFragmentSet(
        finance={"incomes": [{"id": "i1", "type": "bonus", "amount": 10}]},
    )

    first = Migrator(clock=fixed_clock).migrate(fragments)
    second = Migrator(clock=fixed_clock).migrate(fragments)

    if first != second:
        raise AssertionError("Migration is not deterministic")


def test_finance_accounts_and_income_categories() -> None:
    """Test the finance field migrations on pre-account, pre-category data."""
    fragments = LegacyFragmentSet(
        finance={
            "incomes": [
                {
                    "id": "i1",
                    "type": "salary",
                    "amount": 100,
                    "status": "received",
                    "actualDate": "2024-01-01",
                },
                {"id": "i2", "type": "salary", "amount": 50, "status": "expected"},
            ],
            "expenses": [{"id": "e1", "amount": 30}],
            "installments": [{"id": "n1"}],
        }
    )

    finance = Migrator(clock=fixed_clock).migrate(fragments).data["finance"]

    if len(finance["accounts"]) != 1:
        raise AssertionError(f"Expected one account, got {finance['accounts']}")

    account = finance["accounts"][0]
    if account["id"] != MAIN_CASH_ID or account["name"] != "Main Cash":
        raise AssertionError(f"Unexpected account: {account}")

    if account["balance"] != 70:
        raise AssertionError(f"Expected balance 70, got {account['balance']}")

    if account["currency"] != "USD" or account["createdAt"] != FIXED_ISO:
        raise AssertionError(f"Unexpected account fields: {account}")

    for record in finance["incomes"] + finance["expenses"]:
        if record["accountId"] != MAIN_CASH_ID:
            raise AssertionError(f"Record not linked to the default account: {record}")

    if finance["installments"][0]["linkedAccountId"] != MAIN_CASH_ID:
        raise AssertionError("Installment not linked to the default account")

    income = finance["incomes"][0]
    if income["type"] != "variable":
        raise AssertionError(f"Expected nature 'variable', got {income['type']}")

    if income["categoryId"] != SALARY_CATEGORY_ID:
        raise AssertionError(f"Expected Salary category, got {income['categoryId']}")

    category = _category_by_id(finance, income["categoryId"])
    if category is None or category["name"] != "Salary":
        raise AssertionError(f"Category reference does not resolve to Salary: {category}")

    if len(finance["incomeCategories"]) != 10:
        raise AssertionError("Expected only the seeded income categories")

    if finance["expenses"][0]["type"] != "variable":
        raise AssertionError("Expense without a valid nature should become 'variable'")


def test_existing_default_account_is_reused() -> None:
    """Test that unlinked records are attached to the existing default account."""
    fragments = LegacyFragmentSet(
        finance={
            "accounts": [{"id": "a1"}, {"id": "a2", "isDefault": True}],
            "expenses": [{"id": "e1", "amount": 5, "type": "fixed"}],
        }
    )

    finance = Migrator(clock=fixed_clock).migrate(fragments).data["finance"]

    if [a["id"] for a in finance["accounts"]] != ["a1", "a2"]:
        raise AssertionError("No account should be created when one exists")

    expense = finance["expenses"][0]
    if expense["accountId"] != "a2":
        raise AssertionError(f"Expected default account a2, got {expense['accountId']}")

    if expense["type"] != "fixed":
        raise AssertionError("Valid expense nature must be preserved")


def test_custom_income_type_creates_category() -> None:
    """Test that an unknown legacy income type gets its own category."""
    fragments = LegacyFragmentSet(
        finance={"incomes": [{"id": "i1", "type": "consulting", "accountId": "a1"}]}
    )

    finance = Migrator(clock=fixed_clock).migrate(fragments).data["finance"]
    income = finance["incomes"][0]

    category = _category_by_id(finance, income["categoryId"])
    if category is None or category["name"] != "Consulting":
        raise AssertionError(f"Expected a Consulting category, got {category}")

    if category["isDefault"] or category["order"] != 11:
        raise AssertionError(f"Unexpected custom category fields: {category}")


def test_field_migrations_are_idempotent() -> None:
    """Test that re-running the pipeline on migrated data changes nothing."""
    migrator = Migrator(clock=fixed_clock)
    fragments = LegacyFragmentSet(
        main={"freelancing": {}},
        freelancing_projects=[{"id": "p1", "name": "Site", "status": "active"}],
        finance={"incomes": [{"id": "i1", "type": "gift", "amount": 20}]},
    )

    once = migrator.migrate(fragments).data
    twice, applied = migrator.apply_field_migrations(once)

    if applied:
        raise AssertionError(f"No step should apply twice, got {[str(s) for s in applied]}")

    if twice != once:
        raise AssertionError("Second run of the pipeline changed the data")


def test_field_migrations_leave_defaults_untouched() -> None:
    """Test that current, valid data passes through the pipeline unchanged."""
    defaults = create_default_app_data()

    data, applied = Migrator(clock=fixed_clock).apply_field_migrations(defaults)

    if applied or data != defaults:
        raise AssertionError("Default data must not be migrated")


def test_project_status_normalization() -> None:
    """Test that unknown project statuses are reset to 'todo'."""
    data = merge_with_defaults(
        {
            "freelancing": {
                "projects": [
                    {"id": "p1", "status": "active"},
                    {"id": "p2", "status": "done"},
                    {"id": "p3"},
                ]
            }
        }
    )

    migrated, _ = Migrator(clock=fixed_clock).apply_field_migrations(data)
    statuses = [p["status"] for p in migrated["freelancing"]["projects"]]

    if statuses != ["todo", "done", "todo"]:
        raise AssertionError(f"Unexpected statuses: {statuses}")


def test_failing_step_leaves_module_unchanged() -> None:
    """Test that a failing step is skipped and later steps still run."""

    def explode(module: dict, context: object) -> dict:
        raise RuntimeError("boom")

    broken = MigrationStep(
        module="finance",
        from_version="2.1.0",
        to_version="2.2.0",
        description="always fails",
        needs=lambda module: True,
        apply=explode,
    )
    migrator = Migrator(clock=fixed_clock, steps=[broken, FIELD_MIGRATIONS[2]])
    data = merge_with_defaults(
        {"finance": {"incomes": [{"id": "i1"}]}, "freelancing": {"projects": [{"id": "p1"}]}}
    )

    migrated, applied = migrator.apply_field_migrations(data)

    if migrated["finance"] != data["finance"]:
        raise AssertionError("Failed step must leave its module unchanged")

    if applied != [FIELD_MIGRATIONS[2]]:
        raise AssertionError(f"Unexpected applied steps: {[str(s) for s in applied]}")

    if migrated["freelancing"]["projects"][0]["status"] != "todo":
        raise AssertionError("Later step did not run")


def test_pipeline_steps_are_ordered_by_version() -> None:
    """Test that each module's steps chain from one revision to the next."""
    if FIELD_MIGRATIONS[0].identifier != ("finance@1.0.0", "finance@2.0.0"):
        raise AssertionError(f"Unexpected identifier {FIELD_MIGRATIONS[0].identifier}")

    last_seen: dict[str, str] = {}
    for step in FIELD_MIGRATIONS:
        previous = last_seen.get(step.module)
        if previous is not None and previous != step.from_version:
            raise AssertionError(f"Step {step} does not continue from {previous}")
        last_seen[step.module] = step.to_version


def test_normalize_nature_and_category_names() -> None:
    """Test the income type helpers."""
    if normalize_nature("fixed") != "fixed" or normalize_nature("emergency") != "emergency":
        raise AssertionError("Valid natures must be kept")

    if normalize_nature("salary") != "variable" or normalize_nature(None) != "variable":
        raise AssertionError("Invalid natures must default to 'variable'")

    if legacy_category_name(" Salary ") != "Salary":
        raise AssertionError("Known types must map case-insensitively")

    if legacy_category_name(None) != "Other" or legacy_category_name("") != "Other":
        raise AssertionError("Missing types must map to 'Other'")

    if legacy_category_name("side hustle") != "Side hustle":
        raise AssertionError("Custom types must be capitalized")
