"""lon_bot: CI layer that turns source updates into pull requests.

Runs from a CI checkout, updates every source on its own branch and opens a
pull (merge) request per updated source on GitHub, GitLab or Forgejo.
"""

from lon_bot.config import BotConfig, required_env
from lon_bot.main import CycleResult, CycleStatus, PullRequestResult, run_bot
from lon_bot.publisher import FORGES, Forge, ForgejoForge, GitHubForge, GitLabForge, forge_from_env

__version__ = "0.7.0"

__all__ = [
    # config
    "BotConfig",
    "required_env",
    # main
    "run_bot",
    "CycleResult",
    "CycleStatus",
    "PullRequestResult",
    # publisher
    "Forge",
    "FORGES",
    "GitHubForge",
    "GitLabForge",
    "ForgejoForge",
    "forge_from_env",
]
