import logging
from typing import Dict, List, Optional

import pandas as pd  # type: ignore
from rapidfuzz import fuzz, process  # type: ignore

from models import Customer, CustomerForm

logger = logging.getLogger(__name__)

COLUMNS = ["id", "name", "phone", "email", "city", "state_code", "gstin"]


class CustomerNotFound(LookupError):
    pass


class CustomerDirectory:
    def __init__(self, score_cutoff: int = 60):
        """Customers of one business, keyed by id."""
        self.score_cutoff = score_cutoff
        self._customers: Dict[int, Customer] = {}
        self._next_id = 1

    def __len__(self):
        return len(self._customers)

    def add(self, form: CustomerForm) -> Customer:
        customer = Customer(id=self._next_id, **form.model_dump())
        self._customers[customer.id] = customer
        self._next_id += 1
        logger.info("customer added", extra={"customer_id": customer.id})
        return customer

    def update(self, customer_id: int, form: CustomerForm) -> Customer:
        self.get(customer_id)
        customer = Customer(id=customer_id, **form.model_dump())
        self._customers[customer_id] = customer
        logger.info("customer updated", extra={"customer_id": customer_id})
        return customer

    def get(self, customer_id: int) -> Customer:
        try:
            return self._customers[customer_id]
        except KeyError:
            raise CustomerNotFound(f"Customer {customer_id} not found") from None

    def find(self, customer_id: Optional[int]) -> Optional[Customer]:
        if customer_id is None:
            return None
        return self._customers.get(customer_id)

    def delete(self, customer_id: int) -> None:
        self.get(customer_id)
        del self._customers[customer_id]
        logger.info("customer deleted", extra={"customer_id": customer_id})

    def all(self) -> List[Customer]:
        return sorted(self._customers.values(), key=lambda c: c.name.lower())

    def search(self, query: str, limit: int = 10) -> List[Customer]:
        """Name search: substring hits first, then close fuzzy matches."""
        query = (query or "").strip()
        if not query:
            return self.all()[:limit]

        needle = query.lower()
        exact = [c for c in self.all() if needle in c.name.lower()]
        if len(exact) >= limit:
            return exact[:limit]

        seen = {c.id for c in exact}
        rest = [c for c in self.all() if c.id not in seen]
        choices = [c.name for c in rest]
        matches = process.extract(query, choices, scorer=fuzz.WRatio,
                                  limit=limit - len(exact), score_cutoff=self.score_cutoff)
        return exact + [rest[idx] for _match, _score, idx in matches]

    def to_frame(self, customers: Optional[List[Customer]] = None) -> pd.DataFrame:
        rows = [c.model_dump(include=set(COLUMNS)) for c in (self.all() if customers is None else customers)]
        return pd.DataFrame(rows, columns=COLUMNS)
