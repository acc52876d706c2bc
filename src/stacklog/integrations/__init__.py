"""
Bridges from existing logging front-ends to the stacklog handler.

- ``stdlib``: a ``logging.Handler`` for the standard library.
- ``structlog``: a final processor plus ``configure_logging`` wiring both.
"""
