"""Tests for identifier helpers."""
from matura.inference.naming import (
    TABLE_NAME_RE,
    disambiguate_table_name,
    generate_app_name,
    normalize_table_name,
    to_pascal_case,
    to_snake_case,
)


def test_snake_and_pascal_case():
    assert to_snake_case("BudgetEntry") == "budget_entry"
    assert to_snake_case("due-date") == "due_date"
    assert to_snake_case("Blog Posts") == "blog_posts"
    assert to_pascal_case("inventory_items") == "InventoryItems"


def test_normalize_table_name():
    """Reserved words get a suffix, junk falls back to custom_data."""
    assert normalize_table_name("Order") == "order_records"
    assert normalize_table_name("generated_apps") == "generated_apps_records"
    assert normalize_table_name("123") == "custom_data"
    assert normalize_table_name("タスク") == "custom_data"
    assert TABLE_NAME_RE.match(normalize_table_name("My Recipes!"))


def test_disambiguate_table_name():
    assert disambiguate_table_name("tasks", []) == "tasks"
    assert disambiguate_table_name("tasks", ["tasks", "tasks_2"]) == "tasks_3"


def test_generate_app_name():
    assert generate_app_name("タスク管理アプリを作りたい。毎日使います") == "タスク管理アプリを作りたい"
    assert generate_app_name("") == "Generated App"
    assert generate_app_name("!!!") == "Generated App"
    assert len(generate_app_name("a" * 100)) == 30
