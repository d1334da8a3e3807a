"""FastAPI application exposing registration, login, staff and menu endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional

import anyio
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .auth import AuthError, AuthService
from .config import Settings, load_settings
from .database import Database
from .models import Product, ProductCategory, User, UserRole
from .passwords import PasswordHasher
from .products import ProductService
from .security import BearerTokenAuth, TokenIdentity, ensure_admin
from .tokens import TokenCodec
from .users import UserService

logger = logging.getLogger("comanda.api")

INTERNAL_ERROR = "Error interno del servidor"


class CamelModel(BaseModel):
    """Accept and emit camelCase keys while also accepting snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    full_name: Optional[str] = None
    restaurant_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    remember_me: Optional[bool] = None


class MessageResponse(CamelModel):
    message: str


class TokenResponse(CamelModel):
    token: str


class CreateUserRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=100)
    role: UserRole
    active: bool = True


class UpdateUserRequest(CamelModel):
    full_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=100)
    password: Optional[str] = Field(default=None, max_length=100)
    role: Optional[UserRole] = None
    active: Optional[bool] = None


class UserResponse(CamelModel):
    id: int
    restaurant_id: int
    full_name: str
    email: str
    role: UserRole
    role_description: str
    active: bool
    created_at: Optional[datetime]


class UserCountResponse(CamelModel):
    total: int
    active: int


class CreateProductRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    price: float
    category: ProductCategory
    image_url: Optional[str] = Field(default=None, max_length=1024)
    available: bool = True


class UpdateProductRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    price: Optional[float] = None
    category: Optional[ProductCategory] = None
    image_url: Optional[str] = Field(default=None, max_length=1024)
    available: Optional[bool] = None


class ProductResponse(CamelModel):
    id: int
    restaurant_id: int
    name: str
    description: Optional[str]
    price: float
    category: ProductCategory
    category_description: str
    image_url: Optional[str]
    available: bool
    created_at: Optional[datetime]


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        restaurant_id=user.restaurant_id,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        role_description=user.role.description,
        active=user.active,
        created_at=user.created_at,
    )


def product_to_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        restaurant_id=product.restaurant_id,
        name=product.name,
        description=product.description,
        price=product.price,
        category=product.category,
        category_description=product.category.description,
        image_url=product.image_url,
        available=product.available,
        created_at=product.created_at,
    )


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _own_account_error(detail: str) -> HTTPException:
    # An administrator must not lock themselves out of their restaurant.
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    codec: TokenCodec | None = None,
    hasher: PasswordHasher | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    """Instantiate the restaurant API.

    Collaborators that are not supplied are built from ``settings``, which are
    loaded from the environment when omitted.
    """

    if settings is None and (database is None or codec is None):
        settings = load_settings()

    if database is None:
        database = Database(settings.database_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if codec is None:
        codec = TokenCodec(settings.jwt_secret, algorithm=settings.jwt_algorithm)
    if hasher is None:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds) if settings else PasswordHasher()

    auth_service = AuthService(
        database,
        database,
        hasher,
        codec,
        transaction=database.transaction,
    )
    user_service = UserService(database, hasher)
    product_service = ProductService(database)
    current_identity = BearerTokenAuth(codec)

    app = FastAPI(
        title="Comanda Restaurant API",
        version="1.0.0",
        description="Multi-tenant restaurant backend: registration, login, staff and menu management.",
    )
    app.state.database = database
    app.state.token_codec = codec
    app.state.auth_service = auth_service

    if settings is not None and settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while processing %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": INTERNAL_ERROR},
        )

    async def require_admin(identity: TokenIdentity = Depends(current_identity)) -> TokenIdentity:
        return ensure_admin(identity)

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    auth_router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

    @auth_router.post("/register", response_model=MessageResponse)
    async def register(payload: RegisterRequest) -> MessageResponse:
        message = await anyio.to_thread.run_sync(
            auth_service.register,
            payload.full_name,
            payload.restaurant_name,
            payload.email,
            payload.password,
        )
        return MessageResponse(message=message)

    @auth_router.post("/login", response_model=TokenResponse)
    async def login(payload: LoginRequest) -> TokenResponse:
        token = await anyio.to_thread.run_sync(
            auth_service.login,
            payload.email,
            payload.password,
            payload.remember_me,
        )
        return TokenResponse(token=token)

    users_router = APIRouter(prefix="/users", tags=["users"])

    @users_router.get("", response_model=List[UserResponse])
    async def list_users(
        active: bool = False,
        identity: TokenIdentity = Depends(current_identity),
    ) -> List[UserResponse]:
        users = user_service.list_users(identity.restaurant_id, active_only=active)
        return [user_to_response(user) for user in users]

    @users_router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    async def create_user(
        payload: CreateUserRequest,
        identity: TokenIdentity = Depends(require_admin),
    ) -> UserResponse:
        try:
            user = await anyio.to_thread.run_sync(
                partial(
                    user_service.create_user,
                    identity.restaurant_id,
                    full_name=payload.full_name,
                    email=payload.email,
                    password=payload.password,
                    role=payload.role,
                    active=payload.active,
                )
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return user_to_response(user)

    @users_router.get("/count", response_model=UserCountResponse)
    async def count_users(identity: TokenIdentity = Depends(current_identity)) -> UserCountResponse:
        return UserCountResponse(
            total=user_service.count_users(identity.restaurant_id),
            active=user_service.count_users(identity.restaurant_id, active_only=True),
        )

    @users_router.get("/exists/email/{email}", response_model=bool)
    async def email_exists(email: str, identity: TokenIdentity = Depends(current_identity)) -> bool:
        return user_service.email_exists(email)

    @users_router.get("/role/{role}", response_model=List[UserResponse])
    async def list_users_by_role(
        role: str,
        identity: TokenIdentity = Depends(current_identity),
    ) -> List[UserResponse]:
        try:
            users = user_service.list_users_by_role(identity.restaurant_id, role)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return [user_to_response(user) for user in users]

    @users_router.get("/{user_id}", response_model=UserResponse)
    async def read_user(user_id: int, identity: TokenIdentity = Depends(current_identity)) -> UserResponse:
        user = user_service.get_user(identity.restaurant_id, user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
        return user_to_response(user)

    @users_router.put("/{user_id}", response_model=UserResponse)
    async def update_user(
        user_id: int,
        payload: UpdateUserRequest,
        identity: TokenIdentity = Depends(require_admin),
    ) -> UserResponse:
        if identity.user_id == user_id:
            if payload.active is False:
                raise _own_account_error("No puedes desactivar tu propia cuenta")
            if payload.role is not None and payload.role is not UserRole.ADMIN:
                raise _own_account_error("No puedes quitarte el rol de administrador")
        try:
            user = await anyio.to_thread.run_sync(
                partial(
                    user_service.update_user,
                    identity.restaurant_id,
                    user_id,
                    full_name=payload.full_name,
                    email=payload.email,
                    password=payload.password,
                    role=payload.role,
                    active=payload.active,
                )
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
        return user_to_response(user)

    @users_router.put("/{user_id}/status", response_model=UserResponse)
    async def set_user_status(
        user_id: int,
        active: bool,
        identity: TokenIdentity = Depends(require_admin),
    ) -> UserResponse:
        if identity.user_id == user_id and not active:
            raise _own_account_error("No puedes desactivar tu propia cuenta")
        user = user_service.set_active(identity.restaurant_id, user_id, active)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
        return user_to_response(user)

    @users_router.delete("/{user_id}", response_model=MessageResponse)
    async def delete_user(user_id: int, identity: TokenIdentity = Depends(require_admin)) -> MessageResponse:
        if identity.user_id == user_id:
            raise _own_account_error("No puedes eliminar tu propia cuenta")
        if not user_service.delete_user(identity.restaurant_id, user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
        return MessageResponse(message="Usuario eliminado correctamente")

    products_router = APIRouter(prefix="/products", tags=["products"])

    @products_router.get("", response_model=List[ProductResponse])
    async def list_products(
        available: bool = False,
        category: Optional[ProductCategory] = None,
        identity: TokenIdentity = Depends(current_identity),
    ) -> List[ProductResponse]:
        products = product_service.list_products(
            identity.restaurant_id,
            available_only=available,
            category=category,
        )
        return [product_to_response(product) for product in products]

    @products_router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
    async def create_product(
        payload: CreateProductRequest,
        identity: TokenIdentity = Depends(require_admin),
    ) -> ProductResponse:
        try:
            product = product_service.create_product(
                identity.restaurant_id,
                name=payload.name,
                price=payload.price,
                category=payload.category,
                description=payload.description,
                image_url=payload.image_url,
                available=payload.available,
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return product_to_response(product)

    @products_router.get("/{product_id}", response_model=ProductResponse)
    async def read_product(
        product_id: int,
        identity: TokenIdentity = Depends(current_identity),
    ) -> ProductResponse:
        product = product_service.get_product(identity.restaurant_id, product_id)
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Producto no encontrado")
        return product_to_response(product)

    @products_router.put("/{product_id}", response_model=ProductResponse)
    async def update_product(
        product_id: int,
        payload: UpdateProductRequest,
        identity: TokenIdentity = Depends(require_admin),
    ) -> ProductResponse:
        try:
            product = product_service.update_product(
                identity.restaurant_id,
                product_id,
                name=payload.name,
                price=payload.price,
                category=payload.category,
                description=payload.description,
                image_url=payload.image_url,
                available=payload.available,
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Producto no encontrado")
        return product_to_response(product)

    @products_router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_product(product_id: int, identity: TokenIdentity = Depends(require_admin)) -> None:
        if not product_service.delete_product(identity.restaurant_id, product_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Producto no encontrado")

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(products_router)

    return app


__all__ = ["create_app", "product_to_response", "user_to_response"]
