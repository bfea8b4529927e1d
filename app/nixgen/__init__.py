"""nixgen - NixOS generation management.

Discover, prune, and activate NixOS system generations with automatic
profile rollback when activation fails.
"""

__version__ = "0.1.0"
