"""Entity-component-system runtime for 2D games: world, queries, commands, scheduler and gameplay plugins."""

__version__ = "0.3.0"