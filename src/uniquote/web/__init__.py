"""HTTP boundary layer: request contracts and controllers.

All operations here are read-only: quotes and validation verdicts are
returned to the client, which signs and submits transactions itself.
"""

__all__ = [
    "contracts",
    "controllers",
]
