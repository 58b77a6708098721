from typing import Optional

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservo.models.customer import Customer

logger = structlog.get_logger(__name__)


class CustomerService:
    """Links bookings to customer records of a business."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, business_id: int, email: str) -> Optional[Customer]:
        result = await self.db.execute(
            select(Customer).where(
                and_(
                    Customer.business_id == business_id,
                    func.lower(Customer.email) == email.strip().lower(),
                )
            )
        )
        return result.scalar_one_or_none()

    async def find_or_create(
        self,
        business_id: int,
        name: str,
        email: str,
        phone: Optional[str] = None,
    ) -> Optional[Customer]:
        """
        Customer with ``email`` in the business, created when missing.

        Best-effort: the work runs inside a savepoint and any database failure
        is logged and answered with ``None``, leaving the enclosing transaction
        usable. Callers always keep the raw contact fields on the appointment.
        """
        if not email:
            return None

        try:
            async with self.db.begin_nested():
                customer = await self.get_by_email(business_id, email)
                if customer is None:
                    customer = Customer(
                        business_id=business_id,
                        name=name,
                        email=email.strip().lower(),
                        phone=phone,
                    )
                    self.db.add(customer)
                    await self.db.flush()
                    logger.info(
                        "Customer created from booking",
                        customer_id=customer.id,
                        business_id=business_id,
                    )
                elif phone and not customer.phone:
                    customer.phone = phone
            return customer

        except IntegrityError:
            # Created concurrently by another booking; the savepoint is rolled back
            customer = await self._lookup_quietly(business_id, email)
            if customer is None:
                logger.warning(
                    "Customer linkage skipped after integrity error",
                    business_id=business_id,
                )
            return customer
        except SQLAlchemyError as e:
            logger.warning(
                "Customer linkage skipped", business_id=business_id, error=str(e)
            )
            return None

    async def _lookup_quietly(self, business_id: int, email: str) -> Optional[Customer]:
        try:
            return await self.get_by_email(business_id, email)
        except SQLAlchemyError as e:
            logger.warning(
                "Customer lookup failed", business_id=business_id, error=str(e)
            )
            return None
