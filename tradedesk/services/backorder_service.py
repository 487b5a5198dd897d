"""
Backorder Registry Service.

Listing, detail lookup, creation at sale time and administrative soft
delete of backorders. Backorders are never physically deleted.
"""
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradedesk.core.exceptions import TradeDeskError, NotFoundError, AlreadyFulfilledError
from tradedesk.models.backorder import Backorder
from tradedesk.models.customer import Customer
from tradedesk.models.product import Product
from tradedesk.models.sale import Sale, SaleItem
from tradedesk.schemas.backorder import (
    BackorderFilters,
    BackorderDetail,
    BackorderResponse,
    ProductSummary,
    CustomerSummary,
    SaleDetail,
    SaleItemDetail,
)

logger = logging.getLogger(__name__)


class BackorderService:
    """Service for the backorder registry."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Queries ====================

    @staticmethod
    def _with_context(query):
        """Outer join active product, sale item, sale and customer rows."""
        return (
            query
            .outerjoin(Product, and_(Product.id == Backorder.product_id, Product.is_active == True))
            .outerjoin(SaleItem, and_(SaleItem.id == Backorder.sale_item_id, SaleItem.is_active == True))
            .outerjoin(Sale, and_(Sale.id == SaleItem.sale_id, Sale.is_active == True))
            .outerjoin(Customer, and_(Customer.id == Sale.customer_id, Customer.is_active == True))
        )

    @staticmethod
    def _conditions(filters: BackorderFilters) -> list:
        conditions = [Backorder.is_active == True]

        if filters.search:
            term = f"%{filters.search.strip()}%"
            conditions.append(or_(
                Product.name.ilike(term),
                Product.product_code.ilike(term),
                Product.description.ilike(term),
                Sale.invoice_number.ilike(term),
                Customer.name.ilike(term),
            ))
        if filters.product_id:
            conditions.append(Backorder.product_id == filters.product_id)
        if filters.sale_id:
            conditions.append(Sale.id == filters.sale_id)
        if filters.customer_id:
            conditions.append(Customer.id == filters.customer_id)
        if filters.pending_quantity_min is not None:
            conditions.append(Backorder.pending_quantity >= filters.pending_quantity_min)
        if filters.pending_quantity_max is not None:
            conditions.append(Backorder.pending_quantity <= filters.pending_quantity_max)
        if filters.created_at_start:
            conditions.append(Backorder.created_at >= filters.created_at_start)
        if filters.created_at_end:
            conditions.append(Backorder.created_at <= filters.created_at_end)

        return conditions

    @staticmethod
    def _to_detail(
        backorder: Backorder,
        product: Optional[Product],
        sale_item: Optional[SaleItem],
        sale: Optional[Sale],
        customer: Optional[Customer],
    ) -> BackorderDetail:
        sale_detail = None
        if sale is not None:
            sale_detail = SaleDetail(
                id=sale.id,
                invoice_number=sale.invoice_number,
                sale_date=sale.sale_date,
                status=sale.status,
                customer=CustomerSummary.model_validate(customer) if customer else None,
            )

        sale_item_detail = None
        if sale_item is not None:
            sale_item_detail = SaleItemDetail(
                id=sale_item.id,
                quantity=sale_item.quantity,
                fulfilled_quantity=sale_item.fulfilled_quantity,
                backorder_quantity=sale_item.backorder_quantity,
                has_backorder=sale_item.has_backorder,
                product_name=sale_item.product_name,
                product_code=sale_item.product_code,
                sale=sale_detail,
            )

        return BackorderDetail(
            backorder=BackorderResponse.model_validate(backorder),
            product=ProductSummary.model_validate(product) if product else None,
            sale_item=sale_item_detail,
        )

    async def list_backorders(
        self,
        filters: Optional[BackorderFilters] = None,
        page: int = 1,
        size: int = 20,
        get_all: bool = False,
    ) -> Tuple[List[BackorderDetail], int]:
        """
        Active backorders, oldest first so the longest waiting demand is served first.

        Pages are 1-based. get_all returns every match without paging.
        """
        conditions = self._conditions(filters or BackorderFilters())

        count_query = self._with_context(
            select(func.count(Backorder.id)).select_from(Backorder)
        ).where(and_(*conditions))
        total = (await self.db.execute(count_query)).scalar() or 0

        query = self._with_context(
            select(Backorder, Product, SaleItem, Sale, Customer).select_from(Backorder)
        ).where(and_(*conditions)).order_by(Backorder.created_at.asc(), Backorder.id)

        if not get_all:
            query = query.offset((page - 1) * size).limit(size)

        result = await self.db.execute(query)
        return [self._to_detail(*row) for row in result.all()], total

    async def get_backorder(self, backorder_id: uuid.UUID) -> Optional[BackorderDetail]:
        """Backorder with product, sale item, sale and customer context, or None."""
        query = self._with_context(
            select(Backorder, Product, SaleItem, Sale, Customer).select_from(Backorder)
        ).where(Backorder.id == backorder_id)

        row = (await self.db.execute(query)).first()
        if row is None:
            return None
        return self._to_detail(*row)

    # ==================== Mutations ====================

    async def create_backorder(self, sale_item: SaleItem, shortfall: int) -> Backorder:
        """Open a backorder for a sale item's shortfall. Flushes only; the caller commits."""
        backorder = Backorder(
            product_id=sale_item.product_id,
            store_id=sale_item.store_id,
            sale_item_id=sale_item.id,
            pending_quantity=shortfall,
            original_pending_quantity=shortfall,
            is_active=True,
        )
        self.db.add(backorder)
        await self.db.flush()
        return backorder

    async def soft_delete_backorder(
        self,
        backorder_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
    ) -> Backorder:
        """
        Cancel a backorder administratively.

        Zeroes the pending quantity, deactivates the backorder and takes the
        removed quantity off the parent sale item's backorder quantity in the
        same transaction, so the two counters stay in step.
        """
        try:
            result = await self.db.execute(
                select(Backorder)
                .where(Backorder.id == backorder_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            backorder = result.scalar_one_or_none()

            if backorder is None:
                raise NotFoundError(f"Backorder {backorder_id} not found")
            if not backorder.is_active:
                raise AlreadyFulfilledError(f"Backorder {backorder_id} is already inactive")

            removed = backorder.pending_quantity
            backorder.reduce_pending(removed)

            sale_item_result = await self.db.execute(
                select(SaleItem)
                .where(SaleItem.id == backorder.sale_item_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            sale_item = sale_item_result.scalar_one_or_none()
            if sale_item is not None:
                sale_item.apply_backorder_change(-removed)

            await self.db.commit()
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Soft delete of backorder {backorder_id} rolled back: {e}")
            raise

        logger.info(f"Backorder {backorder_id} cancelled by {user_id}, {removed} pending units removed")
        return backorder
