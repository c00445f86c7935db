"""Bot configuration read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from lon.core.exceptions import ConfigError

DEFAULT_USER_NAME = "LonBot"
DEFAULT_USER_EMAIL = "lonbot@lonbot"


def required_env(key: str, environ: Mapping[str, str] | None = None) -> str:
    """Read a required environment variable.

    Raises:
        ConfigError: The variable is not set or empty
    """
    environ = os.environ if environ is None else environ
    value = environ.get(key)
    if not value:
        raise ConfigError(f"Failed to read {key} from environment")
    return value


def parse_labels(value: str) -> tuple[str, ...]:
    """Split a comma separated label list, dropping empty entries."""
    return tuple(label.strip() for label in value.split(",") if label.strip())


@dataclass(frozen=True)
class BotConfig:
    """Settings shared by every forge.

    Attributes:
        user_name: Commit author name (LON_USER_NAME)
        user_email: Commit author email (LON_USER_EMAIL)
        push_url: Where branches are pushed (LON_PUSH_URL); the origin remote when None
        list_commits: Number of new commits listed per update (LON_LIST_COMMITS); 0 disables
        labels: Labels added to every pull request (LON_LABELS)
    """

    user_name: str = DEFAULT_USER_NAME
    user_email: str = DEFAULT_USER_EMAIL
    push_url: str | None = None
    list_commits: int = 0
    labels: tuple[str, ...] = ()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BotConfig:
        environ = os.environ if environ is None else environ

        raw_list_commits = environ.get("LON_LIST_COMMITS", "").strip() or "0"
        try:
            list_commits = int(raw_list_commits)
        except ValueError:
            raise ConfigError(f"LON_LIST_COMMITS must be an integer, got {raw_list_commits!r}") from None
        if list_commits < 0:
            raise ConfigError(f"LON_LIST_COMMITS must not be negative, got {list_commits}")

        return cls(
            user_name=environ.get("LON_USER_NAME") or DEFAULT_USER_NAME,
            user_email=environ.get("LON_USER_EMAIL") or DEFAULT_USER_EMAIL,
            push_url=environ.get("LON_PUSH_URL") or None,
            list_commits=list_commits,
            labels=parse_labels(environ.get("LON_LABELS", "")),
        )

    def __repr__(self) -> str:
        # push_url may embed a token
        return (
            f"BotConfig(user_name={self.user_name!r}, user_email={self.user_email!r}, "
            f"push_url={'<set>' if self.push_url else None}, list_commits={self.list_commits}, "
            f"labels={self.labels!r})"
        )
