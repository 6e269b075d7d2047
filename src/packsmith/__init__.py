"""packsmith - modpack installer.

Downloads a pack's version manifest, configs and mods, and assembles a
runnable instance directory from them.
"""

__version__ = "0.1.0"
