"""
Shared building blocks for domain modules: exceptions, base service and
repository, leveling tables, clock, write guard and text heuristics.

Import from the submodules directly.
"""
