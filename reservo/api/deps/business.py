from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.api.deps.database import get_db
from reservo.models.business import Business
from reservo.services.catalog import CatalogService

logger = structlog.get_logger(__name__)


class BusinessContext:
    """Business context for multi-tenant operations."""

    def __init__(self, business: Business):
        self.business = business
        self.business_id = business.id
        self.is_active = business.is_active


async def get_business_context(
    business_id: int, db: AsyncSession = Depends(get_db)
) -> BusinessContext:
    """
    Get business context for multi-tenant operations.

    This dependency ensures that:
    1. The business exists
    2. The business is active
    3. All subsequent operations are scoped to this business
    """
    business = await CatalogService(db).get_business(business_id)

    if not business:
        logger.warning("Business not found for context", business_id=business_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Business not found"
        )

    if not business.is_active:
        logger.warning("Inactive business access attempted", business_id=business_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Business is inactive"
        )

    logger.debug("Business context established", business_id=business_id)
    return BusinessContext(business)


async def get_business_from_header(
    x_business_id: Optional[str] = Header(
        None, description="Business ID for multi-tenant operations"
    ),
    db: AsyncSession = Depends(get_db),
) -> BusinessContext:
    """Business context selected by the ``X-Business-ID`` header."""
    if not x_business_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Business-ID header is required",
        )

    try:
        business_id = int(x_business_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Business-ID must be a valid integer",
        )

    return await get_business_context(business_id, db)
