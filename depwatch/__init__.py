"""depwatch — dependency inventory, outdated checks and dependency trees."""

__version__ = "0.1.0"
