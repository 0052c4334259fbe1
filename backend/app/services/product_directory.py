# Overview: Product lookups for the subscription core, backed by the products table.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from .interfaces import ProductInfo


class SqlProductDirectory:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def get_product(self, product_id: int) -> ProductInfo | None:
        product = self.session.get(Product, product_id)
        if product is None:
            return None
        return ProductInfo(
            id=product.id,
            price_per_unit=product.price_per_unit,
            is_active=bool(product.is_active),
            name=product.name,
        )
