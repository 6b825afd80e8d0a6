"""
Product catalog: create, read, full overwrite, delete and name search.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

from pymongo import ReturnDocument
from pymongo.database import Database

import errors
from database import serialize_doc, to_object_id
from logger import get_logger
from schemas import Product as ProductSchema, collection_name

log = get_logger("catalog")

PRODUCTS = collection_name(ProductSchema)

# Fields replaced wholesale by an edit
CATALOG_FIELDS = ("name", "description", "image", "price", "brand", "stock")


class CatalogService:
    def __init__(self, db: Database):
        self.products = db[PRODUCTS]

    def list_products(self) -> List[Dict[str, Any]]:
        return [serialize_doc(d) for d in self.products.find()]

    def create_product(self, fields: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Store a product stamped with the creating user's id."""
        product = ProductSchema(**fields).model_dump()
        product["user"] = user["_id"]
        res = self.products.insert_one(product)
        log.info("Product %s created by %s", res.inserted_id, user["email"])
        return serialize_doc(self.products.find_one({"_id": res.inserted_id}))

    def get_product(self, product_id: str) -> Dict[str, Any]:
        product = self.products.find_one({"_id": to_object_id(product_id)})
        if not product:
            raise errors.ProductNotFound()
        return serialize_doc(product)

    def update_product(self, product_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite every catalog field; fields missing from `fields` become null."""
        update = {k: fields.get(k) for k in CATALOG_FIELDS}
        update["updated_at"] = datetime.now(timezone.utc)
        product = self.products.find_one_and_update(
            {"_id": to_object_id(product_id)},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        if not product:
            raise errors.ProductNotFound()
        log.info("Product %s updated", product_id)
        return serialize_doc(product)

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        product = self.products.find_one_and_delete({"_id": to_object_id(product_id)})
        if not product:
            raise errors.ProductNotFound()
        log.info("Product %s deleted", product_id)
        return serialize_doc(product)

    def search_products(self, keyword: str) -> List[Dict[str, Any]]:
        query = {"name": {"$regex": re.escape(keyword), "$options": "i"}}
        products = [serialize_doc(d) for d in self.products.find(query)]
        if not products:
            raise errors.NoResults()
        return products
