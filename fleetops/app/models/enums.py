"""
User roles enumeration.

Defines the role types for the fleet management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        FLEET_MANAGER: Creates and assigns trips, receives operational alerts
        DRIVER: Primary or secondary driver on trips
        MAINTENANCE_PERSONNEL: Handles service requests, chats with the fleet manager
    """
    FLEET_MANAGER = "fleet_manager"
    DRIVER = "driver"
    MAINTENANCE_PERSONNEL = "maintenance_personnel"
