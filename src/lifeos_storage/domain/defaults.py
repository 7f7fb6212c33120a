"""
Default data factories and merge-with-defaults.

Every module has a pure factory producing the canonical empty value of its
current shape. The factories are used for fresh installs and to backfill fields
that older persisted data lacks.
"""

from copy import deepcopy
from typing import Any

from lifeos_storage.domain.schema import MODULE_NAMES, AppData

DEFAULT_CURRENCY = "USD"

# (name, Arabic name, icon, color) in display order
DEFAULT_INCOME_CATEGORIES: tuple[tuple[str, str, str, str], ...] = (
    ("Salary", "راتب", "💼", "#3b82f6"),
    ("Freelance", "عمل حر", "💻", "#8b5cf6"),
    ("Business", "أعمال", "🏢", "#14b8a6"),
    ("Investment", "استثمار", "📈", "#22c55e"),
    ("Bonus", "مكافأة", "🎉", "#f59e0b"),
    ("Commission", "عمولة", "💰", "#10b981"),
    ("Gift", "هدية", "🎁", "#ec4899"),
    ("Refund", "استرداد", "🔄", "#06b6d4"),
    ("Rental Income", "دخل إيجار", "🏠", "#6366f1"),
    ("Other", "أخرى", "📦", "#64748b"),
)

# Legacy free-text income types and the category each one maps to
INCOME_TYPE_TO_CATEGORY: dict[str, str] = {
    "salary": "Salary",
    "freelance": "Freelance",
    "commission": "Commission",
    "bonus": "Bonus",
    "investment": "Investment",
    "gift": "Gift",
    "refund": "Refund",
    "other": "Other",
}


def create_default_settings() -> dict[str, Any]:
    """Create default application settings."""
    return {
        "theme": "dark",
        "userName": "User",
        "email": "",
        "backup": {
            "autoBackupEnabled": False,
            "frequency": "weekly",
            "lastBackupTime": None,
            "maxBackups": 5,
        },
    }


def create_default_notification_settings() -> dict[str, Any]:
    """Create default notification settings."""
    return {"dismissedNotifications": [], "neverShowAgain": []}


def create_default_university_data() -> dict[str, Any]:
    """Create default university data."""
    return {
        "subjects": [],
        "tasks": [],
        "exams": [],
        "gradeEntries": [],
        "academicYears": [],
        "terms": [],
    }


def create_default_freelancer_profile() -> dict[str, Any]:
    """Create default freelancer profile."""
    return {
        "name": "",
        "title": "",
        "email": "",
        "phone": "",
        "portfolioUrl": "",
        "cvVersions": [],
        "platforms": [],
    }


def create_default_freelancing_data() -> dict[str, Any]:
    """Create default freelancing data."""
    return {
        "profile": create_default_freelancer_profile(),
        "applications": [],
        "projects": [],
        "projectTasks": [],
        "standaloneTasks": [],
    }


def create_default_programming_data() -> dict[str, Any]:
    """Create default programming data."""
    return {"learningItems": [], "skills": [], "tools": [], "projects": []}


def create_default_finance_settings() -> dict[str, Any]:
    """Create default finance settings."""
    return {
        "defaultCurrency": DEFAULT_CURRENCY,
        "monthStartDay": 1,
        "showCents": True,
        "enableBudgetAlerts": True,
        "budgetWarningThreshold": 80,
        "enableInstallmentReminders": True,
        "installmentReminderDays": 3,
        "enableInsights": True,
        "weeklyReportEnabled": False,
        "monthlyReportEnabled": True,
    }


def create_default_finance_data() -> dict[str, Any]:
    """Create default finance data."""
    return {
        "accounts": [],
        "transfers": [],
        "incomes": [],
        "expenses": [],
        "categories": [],
        "incomeCategories": [],
        "installments": [],
        "budgets": [],
        "goals": [],
        "alerts": [],
        "settings": create_default_finance_settings(),
    }


def create_default_home_data() -> dict[str, Any]:
    """Create default home data."""
    return {"tasks": [], "goals": [], "habits": []}


def create_default_misc_data() -> dict[str, Any]:
    """Create default misc data."""
    return {"notes": [], "bookmarks": [], "quickCaptures": []}


MODULE_DEFAULTS = {
    "university": create_default_university_data,
    "freelancing": create_default_freelancing_data,
    "programming": create_default_programming_data,
    "finance": create_default_finance_data,
    "home": create_default_home_data,
    "misc": create_default_misc_data,
    "settings": create_default_settings,
    "notificationSettings": create_default_notification_settings,
}


def create_default_module(name: str) -> dict[str, Any]:
    """
    Create the default value of a single module.

    Raises:
        KeyError: If the module name is unknown.
    """
    return MODULE_DEFAULTS[name]()


def create_default_app_data() -> AppData:
    """Create complete default AppData composed of all module defaults."""
    return {name: create_default_module(name) for name in MODULE_NAMES}


def deep_merge(default: Any, stored: Any) -> Any:
    """
    Merge a stored value over its default, field by field.

    Dict defaults are repaired key by key: keys present in ``stored`` win
    (recursively), missing keys are backfilled from ``default`` and keys the
    default does not know are kept. A stored value that is not a dict where the
    default is one is replaced by the default. Lists and scalars are taken
    whole from ``stored``.

    Args:
        default: Canonical default value.
        stored: Persisted value.

    Returns:
        A new merged value; neither argument is mutated.
    """
    if isinstance(default, dict):
        if not isinstance(stored, dict):
            return deepcopy(default)

        merged = {
            key: deep_merge(value, stored[key]) if key in stored else deepcopy(value)
            for key, value in default.items()
        }
        for key, value in stored.items():
            if key not in default:
                merged[key] = deepcopy(value)
        return merged

    return deepcopy(stored)


def merge_with_defaults(partial: Any) -> AppData:
    """
    Merge partial application data with defaults so that every field exists.

    Args:
        partial: Possibly incomplete AppData (anything non-dict counts as empty).

    Returns:
        Complete AppData containing exactly the known modules.
    """
    if not isinstance(partial, dict):
        partial = {}

    return {
        name: deep_merge(create_default_module(name), partial[name])
        if name in partial
        else create_default_module(name)
        for name in MODULE_NAMES
    }
