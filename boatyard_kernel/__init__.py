"""
Boatyard Kernel - project lifecycle governance

Status machine, configuration freeze and amendment control for custom
boat builds:
- Guarded status transitions with milestone side effects
- Deterministic configuration pricing
- Immutable, hash-verified configuration snapshots
- Auditable amendments as the only path to change a frozen scope
- Optimistic concurrency on the project aggregate
"""

__version__ = "0.1.0"
