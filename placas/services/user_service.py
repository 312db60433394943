"""
services/user_service.py
------------------------
Credential checks for interactive users.
"""

from placas.core.logging import get_logger
from placas.core.security import verify_password
from placas.db.gateway import StoreGateway
from placas.models.user import User

logger = get_logger(__name__)


class UserService:

    @staticmethod
    async def authenticate(
        gateway: StoreGateway, login: str, password: str
    ) -> User | None:
        """
        Verify credentials and return the User if valid, else None.
        `login` may be the email or the username, case-insensitive.
        """
        user = await gateway.find_user_by_login(login)
        if user is None or not verify_password(password, user.hashed_password):
            logger.warning("Login failed", login=login.lower())
            return None
        return user
