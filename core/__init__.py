"""
Core shared components for the SlotKeeper scheduling engine.

Holds the exception hierarchy used by every engine layer.
"""

__version__ = "1.0.0"
