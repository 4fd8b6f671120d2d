from .user_manager import UserManager, get_user_manager
from .room_manager import RoomManager, get_room_manager
from .meeting_manager import MeetingManager, get_meeting_manager
from .dashboard_manager import DashboardManager, get_dashboard_manager

__all__ = [
    "UserManager",
    "get_user_manager",
    "RoomManager",
    "get_room_manager",
    "MeetingManager",
    "get_meeting_manager",
    "DashboardManager",
    "get_dashboard_manager",
]
