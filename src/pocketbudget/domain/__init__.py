"""Domain aggregate and storage contracts."""

from .mapping_table import MappingTable
from .state import BudgetState

__all__ = ["BudgetState", "MappingTable"]
