# storefront/api.py

from fastapi import APIRouter

from .admin.controller import router as admin_router
from .auth.controller import router as auth_router
from .cart.controller import router as cart_router
from .catalog.controller import router as catalog_router
from .dashboard.controller import router as dashboard_router
from .orders.controller import router as orders_router
from .payments.controller import router as payments_router
from .shipping.controller import router as shipping_router
from .users.controller import router as users_router

# Routers carry their own prefixes ('/auth', '/cart', ...); main mounts this under '/api'
api_router = APIRouter()

api_router.include_router(catalog_router)
api_router.include_router(cart_router)
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(dashboard_router)
api_router.include_router(orders_router)
api_router.include_router(payments_router)
api_router.include_router(shipping_router)
api_router.include_router(admin_router)
