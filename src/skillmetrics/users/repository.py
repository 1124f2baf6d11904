from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): the service layer depends on this interface, not on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def lock(self, user_id: int) -> Optional[User]:
        """Read the user row with a write lock held until the current transaction ends.

        Serializes allocation checks and pending-request checks for one user.
        """

        raise NotImplementedError

    def list_by_roles(self, roles: Iterable[Role]) -> Sequence[User]:
        raise NotImplementedError
