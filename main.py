import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
import errors
from auth import AccountService, TokenIssuer
from cart import CartService
from catalog import CatalogService
from config import Settings, get_settings
from database import get_db
from logger import get_logger, setup_logging

settings = get_settings()
setup_logging(settings.log_level)

log = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.require_secret()
    client = database.connect(settings)
    app.state.db = client[settings.database_name]
    database.ensure_indexes(app.state.db)
    try:
        yield
    finally:
        database.close(client)


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def access_log(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - start) * 1000
    log.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed)
    return response


# Error mapping

@app.exception_handler(errors.StorefrontError)
async def storefront_error_handler(request: Request, exc: errors.StorefrontError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        log.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in e["loc"] if p != "body") for e in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"message": "Some fields are missing or invalid", "fields": fields},
    )


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    log.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal Server Error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal Server Error"})


# Dependencies

def get_tokens(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings)


def get_accounts(db: Database = Depends(get_db), tokens: TokenIssuer = Depends(get_tokens)) -> AccountService:
    return AccountService(db, tokens)


def get_catalog(db: Database = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_carts(db: Database = Depends(get_db)) -> CartService:
    return CartService(db)


def get_token_email(token: Optional[str] = Header(default=None), tokens: TokenIssuer = Depends(get_tokens)) -> str:
    """Verify the raw `token` header and return its email claim."""
    return tokens.verify(token)


def get_current_user(email: str = Depends(get_token_email), accounts: AccountService = Depends(get_accounts)) -> Dict[str, Any]:
    return accounts.resolve_user(email)


# Request bodies

class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    price: float = Field(..., ge=0)
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)


class ProductEdit(BaseModel):
    productData: ProductIn


class CartAddInput(BaseModel):
    products: List[str] = Field(..., min_length=1)


class CartRemoveInput(BaseModel):
    productID: str


# Routes

@app.get("/")
def read_root():
    return {"message": "Storefront API"}


@app.get("/health")
def health(db: Database = Depends(get_db)):
    response = {
        "backend": "running",
        "database": "unavailable",
        "database_name": None,
        "collections": [],
    }
    try:
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()
        response["database"] = "available"
    except PyMongoError as e:
        log.warning("Health check could not reach the database: %s", e)
        response["database"] = f"error: {str(e)[:80]}"
    return response


# Auth

@app.post("/register", status_code=201)
def register(payload: RegisterInput, accounts: AccountService = Depends(get_accounts)):
    accounts.register(payload.email, payload.password, payload.name)
    return {"message": "User created successfully"}


@app.post("/login")
def login(payload: LoginInput, accounts: AccountService = Depends(get_accounts)):
    return accounts.login(payload.email, payload.password)


# Products

@app.get("/products")
def list_products(catalog: CatalogService = Depends(get_catalog)):
    return {"products": catalog.list_products()}


@app.post("/add-product", status_code=201)
def create_product(
    data: ProductIn,
    current_user: dict = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog),
):
    product = catalog.create_product(data.model_dump(), current_user)
    return {"message": "Product Created Successfully", "product": product}


@app.get("/product/search/{keyword}")
def search_products(keyword: str, catalog: CatalogService = Depends(get_catalog)):
    return {"message": "Products found", "products": catalog.search_products(keyword)}


@app.get("/product/{product_id}", dependencies=[Depends(get_token_email)])
def get_product(product_id: str, catalog: CatalogService = Depends(get_catalog)):
    return {"message": "success", "product": catalog.get_product(product_id)}


@app.patch("/product/edit/{product_id}", dependencies=[Depends(get_token_email)])
def update_product(
    product_id: str,
    data: ProductEdit,
    catalog: CatalogService = Depends(get_catalog),
):
    product = catalog.update_product(product_id, data.productData.model_dump())
    return {"message": "Product Updated Successfully", "product": product}


@app.delete("/product/delete/{product_id}", dependencies=[Depends(get_token_email)])
def delete_product(product_id: str, catalog: CatalogService = Depends(get_catalog)):
    return {"message": "Product deleted successfully", "product": catalog.delete_product(product_id)}


# Cart

@app.get("/cart")
def get_cart(current_user: dict = Depends(get_current_user), carts: CartService = Depends(get_carts)):
    return {"cart": carts.get_cart(current_user)}


@app.post("/cart/add", status_code=201)
def add_to_cart(
    item: CartAddInput,
    current_user: dict = Depends(get_current_user),
    carts: CartService = Depends(get_carts),
):
    cart = carts.add_to_cart(item.products, current_user)
    return {"message": "Cart Updated Successfully", "cart": cart}


@app.delete("/cart/product/delete")
def remove_from_cart(
    item: CartRemoveInput,
    current_user: dict = Depends(get_current_user),
    carts: CartService = Depends(get_carts),
):
    cart = carts.remove_from_cart(item.productID, current_user)
    return {"message": "Product Removed from Cart Successfully", "cart": cart}


def run():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
