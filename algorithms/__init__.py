"""
SlotKeeper scheduling algorithms.

The algorithms are organized into the following subpackages:
- availability: Interval math, availability checks, conflict detection and
  resolution, slot suggestion and ranking
"""

__version__ = "1.0.0"
