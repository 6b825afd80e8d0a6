"""
Per-user shopping cart.

A cart is a set of distinct product references plus a cached total. The
total is recomputed by every writer and never re-validated on read, so it
goes stale when a product's price changes after it was added.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

import errors
from database import serialize_doc, to_object_id
from logger import get_logger
from schemas import Cart as CartSchema, Product as ProductSchema, User as UserSchema, collection_name

log = get_logger("cart")

CARTS = collection_name(CartSchema)
PRODUCTS = collection_name(ProductSchema)
USERS = collection_name(UserSchema)


class CartService:
    def __init__(self, db: Database):
        self.carts = db[CARTS]
        self.products = db[PRODUCTS]
        self.users = db[USERS]

    def _prices(self, ids: Iterable[ObjectId]) -> Dict[ObjectId, float]:
        cursor = self.products.find({"_id": {"$in": list(ids)}}, {"price": 1})
        return {p["_id"]: p.get("price", 0) for p in cursor}

    def _load(self, user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not user.get("cart"):
            return None
        return self.carts.find_one({"_id": user["cart"]})

    def _expand(self, cart: Dict[str, Any]) -> Dict[str, Any]:
        """Serialize a cart with its product references replaced by full records."""
        ids = cart.get("products", [])
        found = {p["_id"]: p for p in self.products.find({"_id": {"$in": ids}})}
        doc = serialize_doc(cart)
        # Products deleted since they were added drop out of the expansion
        doc["products"] = [serialize_doc(found[i]) for i in ids if i in found]
        return doc

    def get_cart(self, user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        cart = self._load(user)
        return self._expand(cart) if cart else None

    def add_to_cart(self, product_ids: List[str], user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge product ids into the user's cart, creating it on first use.

        Ids already in the cart are left alone and not re-counted; each new id
        adds its current price (0 for an unknown product) to the stored total.
        The merged list and total are persisted together in a single write.
        """
        if not product_ids:
            raise errors.ValidationError("No products to add")
        requested: List[ObjectId] = []
        for product_id in product_ids:
            oid = to_object_id(product_id)
            if oid not in requested:
                requested.append(oid)

        prices = self._prices(requested)
        now = datetime.now(timezone.utc)
        cart = self._load(user)
        if cart is None:
            total = sum(prices.get(oid, 0) for oid in requested)
            res = self.carts.insert_one({"products": requested, "total": total, "updated_at": now})
            self.users.update_one({"_id": user["_id"]}, {"$set": {"cart": res.inserted_id}})
            cart_id = res.inserted_id
            log.info("Created cart %s for %s with %d products", cart_id, user["email"], len(requested))
        else:
            products = list(cart.get("products", []))
            total = cart.get("total", 0)
            for oid in requested:
                if oid not in products:
                    products.append(oid)
                    total += prices.get(oid, 0)
            cart_id = cart["_id"]
            self.carts.update_one(
                {"_id": cart_id},
                {"$set": {"products": products, "total": total, "updated_at": now}},
            )
            log.info("Merged %d products into cart %s", len(products) - len(cart.get("products", [])), cart_id)
        return self._expand(self.carts.find_one({"_id": cart_id}))

    def remove_from_cart(self, product_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """Drop one product and recompute the total from the remaining products."""
        cart = self._load(user)
        if cart is None:
            raise errors.CartNotFound()
        oid = to_object_id(product_id)
        products = list(cart.get("products", []))
        if oid not in products:
            raise errors.ProductNotInCart()
        products.remove(oid)
        prices = self._prices(products)
        total = sum(prices.get(p, 0) for p in products)
        self.carts.update_one(
            {"_id": cart["_id"]},
            {"$set": {"products": products, "total": total, "updated_at": datetime.now(timezone.utc)}},
        )
        log.info("Removed product %s from cart %s", product_id, cart["_id"])
        return self._expand(self.carts.find_one({"_id": cart["_id"]}))
