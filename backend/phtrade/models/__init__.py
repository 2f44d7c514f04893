from .base import EntityMixin, mark_created, mark_updated
from .users import User, RoleType
from .pharmacies import Pharmacy, PharmacyContact
from .trades import TradeRecord
from .auth import SessionToken

__all__ = [
    'EntityMixin', 'mark_created', 'mark_updated',
    'User', 'RoleType',
    'Pharmacy', 'PharmacyContact',
    'TradeRecord',
    'SessionToken',
]
