# src/treemap_bot/__init__.py
"""
Treemap Bot package initializer.

We intentionally avoid importing submodules here to keep import-time side effects
to a minimum. Use ``python -m treemap_bot.runner`` to start the bot.
"""

__all__: list[str] = []
