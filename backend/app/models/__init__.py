from app.models.friendship import Friendship, FriendshipStatus
from app.models.group import Group, GroupJoinPolicy, GroupJoinRequest, GroupMembership, GroupRole, JoinRequestStatus
from app.models.prayer_action import PrayerAction, PrayerActionType
from app.models.prayer_request import PrayerCategory, PrayerRequest, PrayerRequestGroup, PrayerStatus, Visibility
from app.models.user import User

__all__ = [
    "User",
    "PrayerRequest",
    "PrayerRequestGroup",
    "PrayerCategory",
    "PrayerStatus",
    "Visibility",
    "PrayerAction",
    "PrayerActionType",
    "Group",
    "GroupMembership",
    "GroupJoinRequest",
    "GroupJoinPolicy",
    "GroupRole",
    "JoinRequestStatus",
    "Friendship",
    "FriendshipStatus",
]
