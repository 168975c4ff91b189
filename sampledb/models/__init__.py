"""ORM model exports."""

from sampledb.models.booking import Booking
from sampledb.models.equipment import Equipment
from sampledb.models.group import Group
from sampledb.models.permission import EquipmentPermission
from sampledb.models.user import User

__all__ = [
    "Booking",
    "Equipment",
    "EquipmentPermission",
    "Group",
    "User",
]
