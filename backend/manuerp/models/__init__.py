from .auth import User, ROLES
from .inventory import Material, StockLedgerEntry, MATERIAL_CATEGORIES, MATERIAL_UNITS, MOVEMENT_TYPES

__all__ = [
    'User', 'ROLES',
    'Material', 'StockLedgerEntry',
    'MATERIAL_CATEGORIES', 'MATERIAL_UNITS', 'MOVEMENT_TYPES',
]
