"""UserRepository protocol: defines user lookup and sign-in contract."""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class UserRepository(Protocol):
    """Repository interface for User entity access."""

    async def get_by_external_id(self, external_id: str) -> Optional[object]:
        """Look up a user by the identity provider's subject id."""
        ...

    async def upsert_on_sign_in(
        self,
        external_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> object:
        """Create the user on first sign-in, otherwise refresh profile fields.

        Returns:
            The persisted User object with ``last_signed_in`` bumped.
        """
        ...
