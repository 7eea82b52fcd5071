"""Expense categorization."""

from .classifier import ExpenseClassifier
from .merchant import display_merchant, normalize_merchant
from .rules import RULES, CategoryRule, match_rule

__all__ = [
    "ExpenseClassifier",
    "normalize_merchant",
    "display_merchant",
    "RULES",
    "CategoryRule",
    "match_rule",
]
