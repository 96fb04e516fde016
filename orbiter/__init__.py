"""Create and manage static sites and server functions on Orbiter."""

__version__ = "0.9.7"
