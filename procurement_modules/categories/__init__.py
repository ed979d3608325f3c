"""
Material categories (``procurement_modules.categories``).

Hierarchical material classification addressed by materialized path.
"""

from procurement_modules.categories.models import Category, CategoryNode, CategoryStatistics
from procurement_modules.categories.service import CategoryService
from procurement_modules.categories.tree import CategoryArena

__all__ = [
    "Category",
    "CategoryArena",
    "CategoryNode",
    "CategoryService",
    "CategoryStatistics",
]
