"""
checkout — cart to order settlement for a second-hand tackle marketplace.

    from checkout import quote as Q          # server-side price reconciliation
    from checkout import payments as P       # authorization state machine
    from checkout import orders as O         # idempotent order writer
    from checkout import idempotency as I    # at-most-once execution per key
    from checkout import saga as S           # compensated steps
"""

from checkout import idempotency
from checkout import saga
from checkout import graph
from checkout.domain import CheckoutError, CheckoutErrors

__version__ = "0.1.0"

__all__ = (
    "idempotency",
    "saga",
    "graph",
    "CheckoutError",
    "CheckoutErrors",
)
