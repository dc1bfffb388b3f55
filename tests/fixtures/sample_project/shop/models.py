"""Order and line-item records."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class Item:
    name: str
    price: float
    quantity: int = 1


@dataclass
class Order:
    order_id: int
    items: List[Item] = field(default_factory=list)

    def add_item(self, item):
        self.items.append(item)
