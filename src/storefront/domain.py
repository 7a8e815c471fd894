"""Storefront bounded context: client-resident cart, checkout and payment core.

Owns the locally persisted cart, reconciles it with the remote cart service,
drives the shipping → payment → confirmation pipeline and submits payments.
The remote service stays the source of truth for orders and payments.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
