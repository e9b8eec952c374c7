# storefront/admin/controller.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from ..auth.service import AdminUser
from ..catalog.models import (
    AdminCategoryResponse, CategoryCreate, CategoryResponse, CategoryUpdate, ProductCreate,
    ProductResponse, ProductUpdate,
)
from ..catalog.service import CatalogService
from ..database.core import DbSession
from ..database.models import OrderStatus, PaymentStatus, UserRole
from .models import (
    AdminOrder, AdminOrderList, AdminOrderUpdate, AdminStats, AdminUserResponse, AdminUserCreate, AdminUserList,
    AdminUserUpdate, BanRequest, RoleRequest, SortOrder, UserSortField,
)
from .service import AdminOrderService, AdminStatsService, AdminUserService

# Every route requires an admin session
router = APIRouter(prefix="/admin", tags=["admin"])


# --- Users ---

@router.get("/users", response_model=AdminUserList)
async def list_users(
    admin: AdminUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    banned: Optional[bool] = Query(None),
    email_verified: Optional[bool] = Query(None),
    sort_by: UserSortField = Query(UserSortField.CREATED_AT),
    sort_order: SortOrder = Query(SortOrder.DESC)
):
    """Users with their order count and total spent."""
    return AdminUserService.list_users(
        db,
        page=page,
        limit=limit,
        search=search,
        role=role,
        banned=banned,
        email_verified=email_verified,
        sort_by=sort_by,
        sort_order=sort_order
    )


@router.post("/users", response_model=AdminUserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user_data: AdminUserCreate, admin: AdminUser, db: DbSession):
    return AdminUserService.create_user(db, user_data)


@router.patch("/users/{user_id}", response_model=AdminUserResponse)
async def update_user(user_id: UUID, user_data: AdminUserUpdate, admin: AdminUser, db: DbSession):
    return AdminUserService.update_user(db, admin, user_id, user_data)


@router.delete("/users/{user_id}")
async def delete_user(user_id: UUID, admin: AdminUser, db: DbSession):
    AdminUserService.delete_user(db, admin, user_id)
    return {"success": True, "message": "User deleted"}


@router.post("/users/{user_id}/ban", response_model=AdminUserResponse)
async def ban_user(user_id: UUID, ban_request: BanRequest, admin: AdminUser, db: DbSession):
    return AdminUserService.ban_user(db, admin, user_id, ban_request)


@router.post("/users/{user_id}/unban", response_model=AdminUserResponse)
async def unban_user(user_id: UUID, admin: AdminUser, db: DbSession):
    return AdminUserService.unban_user(db, user_id)


@router.post("/users/{user_id}/role", response_model=AdminUserResponse)
async def set_user_role(user_id: UUID, role_request: RoleRequest, admin: AdminUser, db: DbSession):
    return AdminUserService.set_role(db, admin, user_id, role_request.role)


# --- Products ---

@router.get("/products", response_model=List[ProductResponse])
async def list_products(admin: AdminUser, db: DbSession):
    """All products, active or not, newest first."""
    return CatalogService.list_products(db)


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(product_id: UUID, admin: AdminUser, db: DbSession):
    return CatalogService.get_product(db, product_id)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(product_data: ProductCreate, admin: AdminUser, db: DbSession):
    return CatalogService.create_product(db, product_data)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(product_id: UUID, product_data: ProductUpdate, admin: AdminUser, db: DbSession):
    return CatalogService.update_product(db, product_id, product_data)


@router.delete("/products/{product_id}")
async def delete_product(product_id: UUID, admin: AdminUser, db: DbSession):
    CatalogService.delete_product(db, product_id)
    return {"success": True, "message": "Product deleted"}


# --- Categories ---

@router.get("/categories", response_model=List[AdminCategoryResponse])
async def list_categories(admin: AdminUser, db: DbSession):
    return CatalogService.list_categories_with_counts(db)


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(category_data: CategoryCreate, admin: AdminUser, db: DbSession):
    return CatalogService.create_category(db, category_data)


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: UUID, category_data: CategoryUpdate, admin: AdminUser, db: DbSession):
    return CatalogService.update_category(db, category_id, category_data)


@router.delete("/categories/{category_id}")
async def delete_category(category_id: UUID, admin: AdminUser, db: DbSession):
    CatalogService.delete_category(db, category_id)
    return {"success": True, "message": "Category deleted"}


# --- Orders ---

@router.get("/orders", response_model=AdminOrderList)
async def list_orders(
    admin: AdminUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    sort_order: SortOrder = Query(SortOrder.DESC)
):
    return AdminOrderService.list_orders(
        db,
        page=page,
        limit=limit,
        search=search,
        order_status=order_status,
        payment_status=payment_status,
        sort_order=sort_order
    )


@router.patch("/orders", response_model=AdminOrder)
async def update_order(order_data: AdminOrderUpdate, admin: AdminUser, db: DbSession):
    """Change status, payment status or tracking number."""
    return AdminOrderService.update_order(db, order_data)


# --- Stats ---

@router.get("/stats", response_model=AdminStats)
async def get_stats(admin: AdminUser, db: DbSession):
    return AdminStatsService.get_stats(db)
