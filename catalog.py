import re
from typing import Optional

from pydantic import BaseModel, Field
from pymongo.database import Database

from database import oid


class ProductFilter(BaseModel):
    """Catalog query with optional bounds. Unset fields do not constrain the result."""

    search: Optional[str] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None

    def to_query(self) -> dict:
        query = {}
        if self.search:
            query["name"] = {"$regex": re.escape(self.search), "$options": "i"}
        if self.min_price is not None or self.max_price is not None:
            price = {}
            if self.min_price is not None:
                price["$gte"] = self.min_price
            if self.max_price is not None:
                price["$lte"] = self.max_price
            query["price"] = price
        if self.category:
            query["category_id"] = self.category
        return query


def paginate(db: Database, collection_name: str, query: dict, page: int = 1, limit: int = 10):
    """Returns (documents, pagination) for one page of `query`."""
    page = max(page, 1)
    limit = max(limit, 1)
    start = (page - 1) * limit
    end = page * limit
    total = db[collection_name].count_documents(query)
    docs = list(db[collection_name].find(query).skip(start).limit(limit))

    pagination = {}
    if end < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}
    return docs, pagination


def refresh_product_rating(db: Database, product_id: str) -> None:
    rows = list(db["review"].aggregate([
        {"$match": {"product_id": product_id}},
        {"$group": {"_id": None, "average_rating": {"$avg": "$rating"}, "num_of_reviews": {"$sum": 1}}},
    ]))
    if rows:
        average = round(rows[0]["average_rating"], 1)
        count = rows[0]["num_of_reviews"]
    else:
        average, count = 0, 0
    db["product"].update_one(
        {"_id": oid(product_id)},
        {"$set": {"average_rating": average, "num_of_reviews": count}},
    )
