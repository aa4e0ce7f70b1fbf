# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from app.models.friendship import Friendship  # noqa: F401
from app.models.group import Group, GroupJoinRequest, GroupMembership  # noqa: F401
from app.models.prayer_action import PrayerAction  # noqa: F401
from app.models.prayer_request import PrayerRequest, PrayerRequestGroup  # noqa: F401
from app.models.user import User  # noqa: F401
