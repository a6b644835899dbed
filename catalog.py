import json
import logging
from typing import Any, Dict, List

from fastapi import HTTPException

from cache import FEATURED_PRODUCTS_KEY
from config import RECOMMENDED_SAMPLE_SIZE
from database import serialize_doc, to_object_id, utcnow
from errors import MediaStoreError
from media import MediaStore
from schemas import Product

logger = logging.getLogger(__name__)

RECOMMENDED_PROJECTION = {"_id": 1, "name": 1, "description": 1, "price": 1, "image": 1}


class CatalogStore:
    """Product queries plus the read-through cache for featured products."""

    def __init__(self, db, cache, media: MediaStore):
        self.db = db
        self.cache = cache
        self.media = media

    @property
    def products(self):
        return self.db["product"]

    def list(self) -> List[Dict[str, Any]]:
        return [serialize_doc(p) for p in self.products.find({})]

    def list_by_category(self, category: str) -> List[Dict[str, Any]]:
        return [serialize_doc(p) for p in self.products.find({"category": category})]

    def get(self, product_id: str):
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.products.find_one({"_id": oid})

    def get_featured(self) -> List[Dict[str, Any]]:
        cached = self.cache.get(FEATURED_PRODUCTS_KEY)
        if cached:
            return json.loads(cached)
        featured = [serialize_doc(p) for p in self.products.find({"is_featured": True})]
        # no TTL: the entry stays until the next toggle overwrites it
        self.cache.set(FEATURED_PRODUCTS_KEY, json.dumps(featured))
        return featured

    def refresh_featured_cache(self) -> None:
        """Recompute the whole featured set and overwrite the cache entry."""
        try:
            featured = [serialize_doc(p) for p in self.products.find({"is_featured": True})]
            self.cache.set(FEATURED_PRODUCTS_KEY, json.dumps(featured))
        except Exception as e:
            logger.error("Error updating featured products cache: %s", e)

    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        image = fields.get("image")
        image_url = self.media.upload(image) if image else ""
        product = Product(**{**fields, "image": image_url or ""})
        doc = product.model_dump()
        now = utcnow()
        doc["created_at"] = now
        doc["updated_at"] = now
        result = self.products.insert_one(doc)
        doc["_id"] = result.inserted_id
        return serialize_doc(doc)

    def delete(self, product_id: str) -> None:
        product = self.get(product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")

        if product.get("image"):
            public_id = self.media.public_id_from_url(product["image"])
            try:
                self.media.destroy(public_id)
                logger.info("Deleted image %s for product %s", public_id, product_id)
            except MediaStoreError as e:
                logger.error("Error deleting product image: %s", e)

        self.products.delete_one({"_id": product["_id"]})

    def sample_recommended(self, n: int = RECOMMENDED_SAMPLE_SIZE) -> List[Dict[str, Any]]:
        pipeline = [{"$sample": {"size": n}}, {"$project": RECOMMENDED_PROJECTION}]
        return [serialize_doc(p) for p in self.products.aggregate(pipeline)]

    def toggle_featured(self, product_id: str) -> Dict[str, Any]:
        product = self.get(product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        is_featured = not product.get("is_featured", False)
        self.products.update_one(
            {"_id": product["_id"]},
            {"$set": {"is_featured": is_featured, "updated_at": utcnow()}},
        )
        self.refresh_featured_cache()
        product["is_featured"] = is_featured
        return serialize_doc(product)
