"""Models package."""

from .user import User
from .connection import Connection
from .profile import Profile
from .oauth_state import OAuthState
