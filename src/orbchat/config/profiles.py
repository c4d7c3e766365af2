from typing import Any

from ..errors import ConfigError, ProfileExistsError, ProfileNotFoundError
from .models import DEFAULT_PROFILE_NAME, Profile
from .store import ConfigStore


class ProfileStore:
    """Named profiles persisted through a ConfigStore."""

    def __init__(self, store: ConfigStore):
        self._store = store

    @property
    def default_name(self) -> str:
        return self._store.config.default_profile

    def names(self) -> list[str]:
        return list(self._store.config.profiles)

    def items(self) -> list[tuple[str, Profile]]:
        return list(self._store.config.profiles.items())

    def resolve(self, name: str | None = None) -> Profile:
        """Return a profile by name, or the default profile when name is None."""
        name = name or self.default_name
        profile = self._store.config.profiles.get(name)
        if profile is None:
            raise ProfileNotFoundError(name)
        return profile

    def create(self, name: str, profile: Profile) -> Profile:
        if name in self._store.config.profiles:
            raise ProfileExistsError(name)
        self._store.config.profiles[name] = profile
        self._store.save()
        return profile

    def update(self, name: str, **changes: Any) -> Profile:
        """Apply field changes to an existing profile (None values are ignored)."""
        current = self.resolve(name)
        updates = {k: v for k, v in changes.items() if v is not None}
        profile = Profile.model_validate({**current.model_dump(), **updates})
        self._store.config.profiles[name] = profile
        self._store.save()
        return profile

    def delete(self, name: str) -> None:
        if name == DEFAULT_PROFILE_NAME:
            raise ConfigError("Cannot delete the default profile")
        config = self._store.config
        if name not in config.profiles:
            raise ProfileNotFoundError(name)
        del config.profiles[name]
        if config.default_profile == name:
            config.default_profile = DEFAULT_PROFILE_NAME
        self._store.save()

    def use(self, name: str) -> None:
        """Make ``name`` the default profile."""
        self.resolve(name)
        self._store.config.default_profile = name
        self._store.save()
