"""All built-in corrigo rules.

Importing this package registers every built-in rule in
``registry.REGISTRY``; registration order is the module order below.
"""

from corrigo.rules import (
    base,
    complexity,
    correctness,
    nursery,
    registry,
    source,
    style,
    suspicious,
)

ALL_RULES: list[base.Rule] = list(registry.REGISTRY)

__all__ = [
    "ALL_RULES",
    "complexity",
    "correctness",
    "nursery",
    "source",
    "style",
    "suspicious",
]
