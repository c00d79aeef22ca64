from typing import List, Optional
from uuid import UUID, uuid4
from decimal import Decimal
import logging

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_, or_, func
from fastapi import HTTPException, status

from erp.modules.inventory.models import (
    Category, Warehouse, Product, Stock, StockMovement, StockAdjustment, MovementType
)
from erp.modules.inventory.schemas import (
    CategoryCreate, CategoryUpdate, WarehouseCreate, WarehouseUpdate,
    ProductCreate, ProductUpdate, ProductList, StockOut, ProductStockSummary, LowStockItem,
    StockMovementCreate, StockAdjustmentCreate, StockTransferCreate, StockTransferOut, StockMovementOut,
    InventoryStats, CategoryStockValue
)
from erp.common.calculations import compute_line, money
from erp.common.schemas import LineItemCreate
from erp.modules.numbering.service import NumberingService

logger = logging.getLogger(__name__)


class CategoryService:
    """Product categories, unique by name inside a company."""

    def __init__(self, db: Session):
        self.db = db

    def create_category(self, data: CategoryCreate, tenant_id: UUID) -> Category:
        if data.parent_id:
            self.get_category(data.parent_id, tenant_id)
        try:
            category = Category(tenant_id=tenant_id, **data.model_dump())
            self.db.add(category)
            self.db.commit()
            self.db.refresh(category)
            return category
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe una categoría con el nombre '{data.name}'"
            )

    def get_categories(self, tenant_id: UUID, include_inactive: bool = False) -> List[Category]:
        query = self.db.query(Category).filter(Category.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Category.is_active == True)
        return query.order_by(Category.name).all()

    def get_category(self, category_id: UUID, tenant_id: UUID) -> Category:
        category = self.db.query(Category).filter(
            and_(Category.id == category_id, Category.tenant_id == tenant_id)
        ).first()
        if not category:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Categoría no encontrada")
        return category

    def update_category(self, category_id: UUID, data: CategoryUpdate, tenant_id: UUID) -> Category:
        category = self.get_category(category_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("parent_id") == category.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Una categoría no puede ser su propia categoría padre"
            )
        for field, value in values.items():
            setattr(category, field, value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe una categoría con ese nombre")
        self.db.refresh(category)
        return category

    def delete_category(self, category_id: UUID, tenant_id: UUID) -> None:
        category = self.get_category(category_id, tenant_id)
        in_use = self.db.query(Product.id).filter(
            Product.category_id == category.id, Product.status == "active"
        ).first()
        if in_use:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede eliminar una categoría con productos activos"
            )
        category.is_active = False
        self.db.commit()


class WarehouseService:
    """Warehouses (bodegas); one of them can be the company default."""

    def __init__(self, db: Session):
        self.db = db

    def create_warehouse(self, data: WarehouseCreate, tenant_id: UUID) -> Warehouse:
        try:
            has_default = self.db.query(Warehouse.id).filter(
                Warehouse.tenant_id == tenant_id, Warehouse.is_default == True
            ).first() is not None
            if data.is_default:
                self._clear_default(tenant_id)

            warehouse = Warehouse(tenant_id=tenant_id, **data.model_dump())
            # la primera bodega queda como predeterminada
            if not has_default:
                warehouse.is_default = True
            self.db.add(warehouse)
            self.db.commit()
            self.db.refresh(warehouse)
            logger.info(f"Warehouse {warehouse.code} created for tenant {tenant_id}")
            return warehouse
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe una bodega con el código '{data.code}'"
            )

    def _clear_default(self, tenant_id: UUID) -> None:
        self.db.query(Warehouse).filter(
            Warehouse.tenant_id == tenant_id, Warehouse.is_default == True
        ).update({"is_default": False})

    def get_warehouses(self, tenant_id: UUID, include_inactive: bool = False) -> List[Warehouse]:
        query = self.db.query(Warehouse).filter(Warehouse.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Warehouse.is_active == True)
        return query.order_by(Warehouse.is_default.desc(), Warehouse.code).all()

    def get_warehouse(self, warehouse_id: UUID, tenant_id: UUID) -> Warehouse:
        warehouse = self.db.query(Warehouse).filter(
            and_(Warehouse.id == warehouse_id, Warehouse.tenant_id == tenant_id)
        ).first()
        if not warehouse:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bodega no encontrada")
        return warehouse

    def get_default_warehouse(self, tenant_id: UUID) -> Warehouse:
        """Default warehouse, or the first active one."""
        warehouse = self.db.query(Warehouse).filter(
            Warehouse.tenant_id == tenant_id, Warehouse.is_active == True
        ).order_by(Warehouse.is_default.desc(), Warehouse.created_at).first()
        if not warehouse:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La empresa no tiene bodegas activas"
            )
        return warehouse

    def resolve_warehouse(self, warehouse_id: Optional[UUID], tenant_id: UUID) -> Warehouse:
        if warehouse_id is None:
            return self.get_default_warehouse(tenant_id)
        warehouse = self.db.query(Warehouse).filter(
            and_(Warehouse.id == warehouse_id, Warehouse.tenant_id == tenant_id)
        ).first()
        if not warehouse or not warehouse.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La bodega especificada no existe, está inactiva o no pertenece a esta empresa"
            )
        return warehouse

    def update_warehouse(self, warehouse_id: UUID, data: WarehouseUpdate, tenant_id: UUID) -> Warehouse:
        warehouse = self.get_warehouse(warehouse_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("is_default"):
            self._clear_default(tenant_id)
        for field, value in values.items():
            setattr(warehouse, field, value)
        self.db.commit()
        self.db.refresh(warehouse)
        return warehouse


class ProductService:
    """Product catalog. SKU is unique per company; delete is a soft delete."""

    def __init__(self, db: Session):
        self.db = db

    def create_product(self, data: ProductCreate, tenant_id: UUID) -> Product:
        if data.category_id:
            CategoryService(self.db).get_category(data.category_id, tenant_id)

        existing = self.db.query(Product.id).filter(
            Product.tenant_id == tenant_id, Product.sku == data.sku
        ).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un producto con el SKU '{data.sku}'"
            )

        try:
            product = Product(tenant_id=tenant_id, **data.model_dump())
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)
            logger.info(f"Product {product.sku} created for tenant {tenant_id}")
            return product
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un producto con el SKU '{data.sku}'"
            )
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error creando producto: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al crear el producto"
            )

    def get_products(
        self,
        tenant_id: UUID,
        limit: int = 100,
        offset: int = 0,
        search: Optional[str] = None,
        category_id: Optional[UUID] = None,
        include_inactive: bool = False
    ) -> ProductList:
        query = self.db.query(Product).filter(Product.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Product.status == "active")
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Product.name.ilike(term),
                Product.sku.ilike(term),
                Product.barcode.ilike(term)
            ))
        if category_id:
            query = query.filter(Product.category_id == category_id)

        total = query.count()
        products = query.order_by(Product.name).offset(offset).limit(limit).all()
        return ProductList(items=products, total=total, limit=limit, offset=offset)

    def get_product(self, product_id: UUID, tenant_id: UUID, include_deleted: bool = False) -> Product:
        query = self.db.query(Product).filter(
            and_(Product.id == product_id, Product.tenant_id == tenant_id)
        )
        if not include_deleted:
            query = query.filter(Product.status == "active")
        product = query.first()
        if not product:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Producto no encontrado")
        return product

    def require_active_product(self, product_id: UUID, tenant_id: UUID) -> Product:
        """Like get_product, but a missing product in a document line is a 400."""
        product = self.db.query(Product).filter(
            and_(Product.id == product_id, Product.tenant_id == tenant_id)
        ).first()
        if not product:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El producto especificado no existe o no pertenece a esta empresa"
            )
        if product.is_deleted:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El producto '{product.name}' está inactivo"
            )
        return product

    def price_lines(self, items: List[LineItemCreate], tenant_id: UUID,
                    price_field: str = "selling_price") -> List[dict]:
        """
        Resolve document lines: unit price, tax rate and description default
        to the product's, then the line amounts are computed.
        """
        lines = []
        for position, item in enumerate(items, start=1):
            product = None
            if item.product_id:
                product = self.require_active_product(item.product_id, tenant_id)

            unit_price = item.unit_price if item.unit_price is not None else getattr(product, price_field)
            tax_rate = item.tax_rate if item.tax_rate is not None else (product.tax_rate if product else Decimal("0"))
            amounts = compute_line(item.quantity, unit_price, item.discount_percentage, tax_rate)

            lines.append({
                "line_number": position,
                "product_id": product.id if product else None,
                "description": item.description or (product.name if product else None),
                "quantity": item.quantity,
                "unit_price": unit_price,
                "discount_percentage": item.discount_percentage,
                "tax_rate": tax_rate,
                **amounts._asdict()
            })
        return lines

    def update_product(self, product_id: UUID, data: ProductUpdate, tenant_id: UUID) -> Product:
        product = self.get_product(product_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("category_id"):
            CategoryService(self.db).get_category(values["category_id"], tenant_id)
        for field, value in values.items():
            setattr(product, field, value)
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete_product(self, product_id: UUID, tenant_id: UUID) -> None:
        product = self.get_product(product_id, tenant_id)
        product.soft_delete()
        self.db.commit()
        logger.info(f"Product {product.sku} deactivated")

    def restore_product(self, product_id: UUID, tenant_id: UUID) -> Product:
        product = self.get_product(product_id, tenant_id, include_deleted=True)
        product.restore()
        self.db.commit()
        self.db.refresh(product)
        return product


class StockService:
    """
    Stock per (product, warehouse) and the movement ledger.

    apply_movement is the single entry point that changes a quantity: it locks
    the stock row, validates the resulting balance and records the movement.
    It only flushes; callers commit together with their own document.
    """

    def __init__(self, db: Session):
        self.db = db

    def _lock_stock(self, tenant_id: UUID, product_id: UUID, warehouse_id: UUID) -> Stock:
        stock = self.db.query(Stock).filter(
            and_(
                Stock.tenant_id == tenant_id,
                Stock.product_id == product_id,
                Stock.warehouse_id == warehouse_id
            )
        ).with_for_update().first()

        if not stock:
            stock = Stock(
                tenant_id=tenant_id,
                product_id=product_id,
                warehouse_id=warehouse_id,
                quantity=Decimal("0")
            )
            self.db.add(stock)
            self.db.flush()
        return stock

    def apply_movement(
        self,
        tenant_id: UUID,
        product: Product,
        warehouse: Warehouse,
        quantity: Decimal,
        movement_type: MovementType,
        user_id: Optional[UUID] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[StockMovement]:
        """Change stock by a signed quantity. Products that don't track inventory are skipped."""
        if not product.track_inventory:
            return None
        if quantity == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La cantidad del movimiento no puede ser cero"
            )

        stock = self._lock_stock(tenant_id, product.id, warehouse.id)
        final_quantity = Decimal(stock.quantity) + Decimal(quantity)
        if final_quantity < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"Stock insuficiente para '{product.name}' en '{warehouse.name}'. "
                    f"Disponible: {stock.quantity}, Solicitado: {abs(quantity)}"
                )
            )
        stock.quantity = final_quantity

        movement = StockMovement(
            tenant_id=tenant_id,
            product_id=product.id,
            warehouse_id=warehouse.id,
            quantity=quantity,
            balance_after=final_quantity,
            movement_type=movement_type.value,
            reference=reference,
            notes=notes,
            created_by=user_id
        )
        self.db.add(movement)
        self.db.flush()
        logger.info(
            f"Stock {movement_type.value} {quantity} of {product.sku} at {warehouse.code} "
            f"-> {final_quantity} (ref {reference})"
        )
        return movement

    def get_stock(self, tenant_id: UUID, product_id: Optional[UUID] = None,
                  warehouse_id: Optional[UUID] = None) -> List[StockOut]:
        query = self.db.query(Stock).options(
            selectinload(Stock.product),
            selectinload(Stock.warehouse)
        ).filter(Stock.tenant_id == tenant_id)
        if product_id:
            query = query.filter(Stock.product_id == product_id)
        if warehouse_id:
            query = query.filter(Stock.warehouse_id == warehouse_id)
        return [self._stock_to_output(stock) for stock in query.all()]

    def get_quantity(self, tenant_id: UUID, product_id: UUID, warehouse_id: UUID) -> Decimal:
        quantity = self.db.query(Stock.quantity).filter(
            Stock.tenant_id == tenant_id,
            Stock.product_id == product_id,
            Stock.warehouse_id == warehouse_id
        ).scalar()
        return Decimal(quantity) if quantity is not None else Decimal("0")

    def get_product_stock_summary(self, tenant_id: UUID, product_id: UUID) -> ProductStockSummary:
        product = ProductService(self.db).get_product(product_id, tenant_id, include_deleted=True)
        stocks = self.get_stock(tenant_id, product_id=product_id)
        return ProductStockSummary(
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            total_quantity=sum((stock.quantity for stock in stocks), Decimal("0")),
            reorder_level=product.reorder_level,
            warehouse_stocks=stocks
        )

    def get_low_stock(self, tenant_id: UUID, warehouse_id: Optional[UUID] = None) -> List[LowStockItem]:
        """Stock rows at or below the product reorder level."""
        query = self.db.query(Stock, Product, Warehouse).join(
            Product, Stock.product_id == Product.id
        ).join(
            Warehouse, Stock.warehouse_id == Warehouse.id
        ).filter(
            Stock.tenant_id == tenant_id,
            Product.status == "active",
            Product.track_inventory == True,
            Product.reorder_level > 0,
            Stock.quantity <= Product.reorder_level
        )
        if warehouse_id:
            query = query.filter(Stock.warehouse_id == warehouse_id)

        return [
            LowStockItem(
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                warehouse_id=warehouse.id,
                warehouse_name=warehouse.name,
                quantity=stock.quantity,
                reorder_level=product.reorder_level
            )
            for stock, product, warehouse in query.order_by(Product.name).all()
        ]

    def get_inventory_stats(self, tenant_id: UUID, warehouse_id: Optional[UUID] = None) -> InventoryStats:
        """Active products with their stock on hand, grouped by category."""
        stock_query = self.db.query(Stock.product_id, func.sum(Stock.quantity)).filter(Stock.tenant_id == tenant_id)
        if warehouse_id:
            stock_query = stock_query.filter(Stock.warehouse_id == warehouse_id)
        on_hand = {
            product_id: Decimal(quantity or 0)
            for product_id, quantity in stock_query.group_by(Stock.product_id).all()
        }

        rows = self.db.query(Product, Category).outerjoin(
            Category, Product.category_id == Category.id
        ).filter(
            Product.tenant_id == tenant_id,
            Product.status == "active"
        ).all()

        zero = Decimal("0")
        total_quantity = stock_value = retail_value = zero
        tracked = out_of_stock = 0
        categories = {}
        for product, category in rows:
            quantity = on_hand.get(product.id, zero)
            value = quantity * Decimal(product.cost_price)
            total_quantity += quantity
            stock_value += value
            retail_value += quantity * Decimal(product.selling_price)
            if product.track_inventory:
                tracked += 1
                if quantity <= 0:
                    out_of_stock += 1

            key = category.id if category else None
            if key not in categories:
                categories[key] = CategoryStockValue(
                    category_id=key,
                    category_name=category.name if category else "Sin categoría",
                    product_count=0, quantity=zero, stock_value=zero
                )
            bucket = categories[key]
            bucket.product_count += 1
            bucket.quantity += quantity
            bucket.stock_value += value

        return InventoryStats(
            total_products=len(rows),
            tracked_products=tracked,
            total_quantity=total_quantity,
            stock_value=money(stock_value),
            retail_value=money(retail_value),
            low_stock_items=len(self.get_low_stock(tenant_id, warehouse_id)),
            out_of_stock_products=out_of_stock,
            categories=sorted(categories.values(), key=lambda c: c.category_name)
        )

    def create_movement(self, tenant_id: UUID, data: StockMovementCreate, user_id: UUID) -> StockMovement:
        """Manual IN/OUT movement."""
        product = ProductService(self.db).require_active_product(data.product_id, tenant_id)
        warehouse = WarehouseService(self.db).resolve_warehouse(data.warehouse_id, tenant_id)
        if not product.track_inventory:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El producto '{product.name}' no controla inventario"
            )
        try:
            movement = self.apply_movement(
                tenant_id, product, warehouse, data.quantity, data.movement_type,
                user_id=user_id, reference=data.reference, notes=data.notes
            )
            self.db.commit()
            self.db.refresh(movement)
            return movement
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error registrando movimiento: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al registrar el movimiento"
            )

    def get_movements(
        self,
        tenant_id: UUID,
        product_id: Optional[UUID] = None,
        warehouse_id: Optional[UUID] = None,
        movement_type: Optional[MovementType] = None,
        reference: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[StockMovement]:
        query = self.db.query(StockMovement).filter(StockMovement.tenant_id == tenant_id)
        if product_id:
            query = query.filter(StockMovement.product_id == product_id)
        if warehouse_id:
            query = query.filter(StockMovement.warehouse_id == warehouse_id)
        if movement_type:
            query = query.filter(StockMovement.movement_type == movement_type.value)
        if reference:
            query = query.filter(StockMovement.reference == reference)
        return query.order_by(StockMovement.created_at.desc()).offset(offset).limit(limit).all()

    def create_adjustment(self, tenant_id: UUID, data: StockAdjustmentCreate, user_id: UUID) -> StockAdjustment:
        """
        Ajuste manual a la cantidad contada. Recibe su número del contador
        'stock_adjustment' y deja un movimiento ADJ con la diferencia.
        """
        product = ProductService(self.db).require_active_product(data.product_id, tenant_id)
        warehouse = WarehouseService(self.db).resolve_warehouse(data.warehouse_id, tenant_id)
        try:
            adjustment_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                StockAdjustment, "adjustment_number", tenant_id, "stock_adjustment",
                explicit_number=data.adjustment_number, reference_id=str(adjustment_id), created_by=user_id
            )

            previous = self._lock_stock(tenant_id, product.id, warehouse.id).quantity
            difference = data.new_quantity - Decimal(previous)
            if difference != 0:
                self.apply_movement(
                    tenant_id, product, warehouse, difference, MovementType.ADJ,
                    user_id=user_id, reference=number, notes=data.reason
                )

            adjustment = StockAdjustment(
                id=adjustment_id,
                tenant_id=tenant_id,
                adjustment_number=number,
                product_id=product.id,
                warehouse_id=warehouse.id,
                previous_quantity=previous,
                new_quantity=data.new_quantity,
                difference=difference,
                reason=data.reason,
                created_by=user_id
            )
            self.db.add(adjustment)
            self.db.commit()
            self.db.refresh(adjustment)
            logger.info(f"Stock adjustment {number}: {product.sku} {previous} -> {data.new_quantity}")
            return adjustment
        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe un ajuste con ese número")
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error creando ajuste de inventario: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al crear el ajuste"
            )

    def get_adjustments(self, tenant_id: UUID, limit: int = 50, offset: int = 0) -> List[StockAdjustment]:
        return self.db.query(StockAdjustment).filter(
            StockAdjustment.tenant_id == tenant_id
        ).order_by(StockAdjustment.created_at.desc()).offset(offset).limit(limit).all()

    def transfer_stock(self, tenant_id: UUID, data: StockTransferCreate, user_id: UUID) -> StockTransferOut:
        """Transfer between warehouses: one OUT and one IN movement under a 'stock_transfer' number."""
        if data.from_warehouse_id == data.to_warehouse_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede transferir a la misma bodega"
            )
        product = ProductService(self.db).require_active_product(data.product_id, tenant_id)
        warehouses = WarehouseService(self.db)
        source = warehouses.resolve_warehouse(data.from_warehouse_id, tenant_id)
        target = warehouses.resolve_warehouse(data.to_warehouse_id, tenant_id)
        if not product.track_inventory:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El producto '{product.name}' no controla inventario"
            )

        try:
            number = NumberingService(self.db).next_document_number(
                tenant_id, "stock_transfer", created_by=user_id
            )
            out_movement = self.apply_movement(
                tenant_id, product, source, -data.quantity, MovementType.TRANSFER,
                user_id=user_id, reference=number, notes=f"Transferencia a {target.code}: {data.notes or ''}".strip()
            )
            in_movement = self.apply_movement(
                tenant_id, product, target, data.quantity, MovementType.TRANSFER,
                user_id=user_id, reference=number, notes=f"Transferencia desde {source.code}: {data.notes or ''}".strip()
            )
            self.db.commit()
            self.db.refresh(out_movement)
            self.db.refresh(in_movement)
            return StockTransferOut(
                transfer_number=number,
                movements=[
                    StockMovementOut.model_validate(out_movement),
                    StockMovementOut.model_validate(in_movement)
                ]
            )
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error transfiriendo stock: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al transferir el stock"
            )

    def _stock_to_output(self, stock: Stock) -> StockOut:
        return StockOut(
            id=stock.id,
            product_id=stock.product_id,
            warehouse_id=stock.warehouse_id,
            quantity=stock.quantity,
            product_name=stock.product.name if stock.product else None,
            product_sku=stock.product.sku if stock.product else None,
            warehouse_name=stock.warehouse.name if stock.warehouse else None
        )
