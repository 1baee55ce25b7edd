"""
User identity lookups for response assembly.
Handles author projections and display names.
"""
from typing import Dict, NamedTuple, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from database import User
from .exceptions import NotFoundError


class UserIdentity(NamedTuple):
    """The author fields shown next to discussions and posts."""
    id: int
    firstname: str
    lastname: str
    email: str
    picture: int
    imagealt: Optional[str]


class UserIdentityCache:
    """
    Request-local memo of user identities.

    Create one per external function call and pass it through the
    aggregation so each distinct user is fetched at most once.
    """

    def __init__(self, db: Session):
        self.db = db
        self._users: Dict[int, UserIdentity] = {}

    def get(self, user_id: int) -> UserIdentity:
        """
        Get a user's identity, fetching it on first use.

        Raises:
            NotFoundError: If the user does not exist
        """
        if user_id not in self._users:
            user = self.db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise NotFoundError("users", user_id)
            self._users[user_id] = UserIdentity(
                id=user.id,
                firstname=user.firstname,
                lastname=user.lastname,
                email=user.email,
                picture=user.picture,
                imagealt=user.imagealt,
            )
        return self._users[user_id]

    def __len__(self):
        return len(self._users)


def fullname(identity: UserIdentity, override: bool = False) -> str:
    """
    Build a user's display name.

    Args:
        identity: The user
        override: True when the viewer holds moodle/site:viewfullnames,
            which selects the alternative full name format

    Returns:
        The formatted name
    """
    template = settings.alternativefullnameformat if override else settings.fullnamedisplay
    return template.format(firstname=identity.firstname, lastname=identity.lastname).strip()
