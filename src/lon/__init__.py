"""lon: lock and update Nix dependencies."""

__version__ = "0.7.0"
