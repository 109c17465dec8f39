"""darwin-rebuild: build, switch and roll back nix-darwin configurations."""

__version__ = "0.3.0"
