"""Operations reports dashboard service.

Aggregates cost, database, cache and catalogue data behind a pluggable
reports API.
"""

__version__ = "0.1.0"
