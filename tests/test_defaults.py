"""Unit tests for default factories and merge-with-defaults."""

from lifeos_storage.domain.defaults import (
    create_default_app_data,
    create_default_finance_settings,
    create_default_settings,
    deep_merge,
    merge_with_defaults,
)
from lifeos_storage.domain.schema import MODULE_NAMES


def test_default_app_data_has_every_module() -> None:
    """Test that the default AppData contains exactly the known modules."""
    data = create_default_app_data()

    if set(data) != set(MODULE_NAMES):
        raise AssertionError(f"Unexpected modules: {sorted(data)}")

    if data["settings"]["userName"] != "User":
        raise AssertionError("Expected default userName 'User'")

    if data["finance"]["settings"]["defaultCurrency"] != "USD":
        raise AssertionError("Expected default currency USD")


def test_default_factories_return_fresh_objects() -> None:
    """Test that mutating one default does not leak into the next one."""
    first = create_default_app_data()
    first["home"]["tasks"].append({"id": "t1"})

    second = create_default_app_data()
    if second["home"]["tasks"]:
        raise AssertionError("Default factories must not share state")


def test_merge_empty_equals_defaults() -> None:
    """Test that merging an empty object yields the defaults exactly."""
    if merge_with_defaults({}) != create_default_app_data():
        raise AssertionError("merge_with_defaults({}) must equal create_default_app_data()")


def test_merge_non_object_equals_defaults() -> None:
    """Test that non-object input is treated as empty."""
    if merge_with_defaults(None) != create_default_app_data():
        raise AssertionError("Expected defaults for None input")

    if merge_with_defaults(["unexpected"]) != create_default_app_data():
        raise AssertionError("Expected defaults for list input")


def test_merge_preserves_partial_settings() -> None:
    """Test that a stored field survives and every other field is backfilled."""
    merged = merge_with_defaults({"settings": {"userName": "X"}})

    expected_settings = create_default_settings()
    expected_settings["userName"] = "X"

    if merged["settings"] != expected_settings:
        raise AssertionError(f"Unexpected settings: {merged['settings']}")

    defaults = create_default_app_data()
    for name in defaults:
        if name != "settings" and merged[name] != defaults[name]:
            raise AssertionError(f"Module {name} should equal its default")


def test_merge_repairs_nested_fields() -> None:
    """Test that a present parent object with a missing child field is repaired."""
    merged = merge_with_defaults(
        {"finance": {"incomes": [{"id": "i1"}], "settings": {"defaultCurrency": "EGP"}}}
    )

    settings = merged["finance"]["settings"]
    expected = create_default_finance_settings()
    expected["defaultCurrency"] = "EGP"

    if settings != expected:
        raise AssertionError(f"Finance settings not repaired field by field: {settings}")

    if merged["finance"]["incomes"] != [{"id": "i1"}]:
        raise AssertionError("Stored list must be kept whole")

    if merged["finance"]["accounts"] != []:
        raise AssertionError("Missing finance collection must be backfilled")


def test_merge_repairs_deeply_nested_backup_settings() -> None:
    """Test that merging recurses below the first level."""
    merged = merge_with_defaults({"settings": {"backup": {"maxBackups": 10}}})
    backup = merged["settings"]["backup"]

    if backup["maxBackups"] != 10:
        raise AssertionError("Stored nested value must win")

    if backup["frequency"] != "weekly":
        raise AssertionError("Missing nested field must be backfilled")


def test_merge_keeps_unknown_fields() -> None:
    """Test that fields unknown to the defaults are preserved."""
    merged = merge_with_defaults({"settings": {"language": "ar"}, "home": {"pets": []}})

    if merged["settings"].get("language") != "ar":
        raise AssertionError("Unknown settings field must be preserved")

    if merged["home"].get("pets") != []:
        raise AssertionError("Unknown home field must be preserved")


def test_merge_replaces_wrongly_typed_object() -> None:
    """Test that a non-object where an object is expected falls back to the default."""
    merged = merge_with_defaults({"settings": {"backup": None}, "misc": ["oops"]})

    if merged["settings"]["backup"] != create_default_settings()["backup"]:
        raise AssertionError("Null backup settings must be replaced by the default")

    if merged["misc"] != create_default_app_data()["misc"]:
        raise AssertionError("List in place of a module must be replaced by the default")


def test_deep_merge_does_not_mutate_inputs() -> None:
    """Test that deep_merge leaves both arguments untouched."""
    default = {"a": {"b": 1}, "items": []}
    stored = {"a": {}, "items": [1]}

    merged = deep_merge(default, stored)
    merged["a"]["b"] = 99
    merged["items"].append(2)

    if default != {"a": {"b": 1}, "items": []}:
        raise AssertionError(f"Default mutated: {default}")

    if stored != {"a": {}, "items": [1]}:
        raise AssertionError(f"Stored value mutated: {stored}")
