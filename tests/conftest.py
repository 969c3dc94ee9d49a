import copy
import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import asyncpg
import pytest
from fastapi.testclient import TestClient

from core import db
from products.repository import WRITABLE_COLUMNS

logging.getLogger("catalog.request").setLevel(logging.WARNING)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

_FILTER_ALIASES = {"c": "category", "f": "finish_type", "o": "occasion_type"}


def _normalize(sql):
    return " ".join(sql.split())


class FakeStore:
    """
    In-memory stand-in for the catalog tables.

    Understands exactly the statements the repositories issue. Set `fail_on`
    to a SQL fragment to make the matching statement raise `fail_with`
    (a database error by default). Set `refuse_connections` to make every
    acquire and pool-level query fail the way an unreachable server does.
    """

    def __init__(self):
        self.products = {}
        self.images = []
        self.categories = {1: "Vases", 2: "Bowls"}
        self.finish_types = {1: "Matte", 2: "Glossy"}
        self.occasion_types = {1: "Wedding", 2: "Birthday"}
        self.next_id = 1
        self.fail_on = None
        self.fail_with = asyncpg.ForeignKeyViolationError("simulated failure")
        self.refuse_connections = False
        self.statements = []
        self.commits = 0
        self.rollbacks = 0
        self.acquired = 0
        self.released = 0

    # -- seeding helpers -------------------------------------------------

    def add_product(self, **fields):
        product_id = self.next_id
        self.next_id += 1
        row = {column: fields.get(column) for column in WRITABLE_COLUMNS}
        row["price"] = Decimal(str(fields.get("price", "10")))
        if row["offer_price"] is not None:
            row["offer_price"] = Decimal(str(row["offer_price"]))
        row["count"] = fields.get("count") or 0
        row["product_id"] = product_id
        row["created_at"] = fields.get("created_at") or BASE_TIME + timedelta(minutes=product_id)
        self.products[product_id] = row
        return product_id

    def add_image(self, product_id, image_url, alt_text, sort_order):
        self.images.append(
            {
                "product_id": product_id,
                "image_url": image_url,
                "alt_text": alt_text,
                "sort_order": sort_order,
            }
        )

    def images_for(self, product_id):
        return sorted(
            (img for img in self.images if img["product_id"] == product_id),
            key=lambda img: img["sort_order"],
        )

    # -- transaction support --------------------------------------------

    def snapshot(self):
        return copy.deepcopy((self.products, self.images, self.next_id))

    def restore(self, state):
        self.products, self.images, self.next_id = state

    # -- statement handling ---------------------------------------------

    def _check_fail(self, sql):
        self.statements.append(sql)
        if self.fail_on and self.fail_on in sql:
            raise self.fail_with

    def connect(self):
        if self.refuse_connections:
            raise ConnectionRefusedError(111, "Connection refused")

    def _joined(self, product):
        row = dict(product)
        row["category"] = self.categories.get(product.get("category_id"))
        row["finish_type"] = self.finish_types.get(product.get("finish_type_id"))
        row["occasion_type"] = self.occasion_types.get(product.get("occasion_type_id"))
        return row

    def _list_products(self, sql, args):
        rows = [self._joined(p) for p in self.products.values()]
        for alias, index in re.findall(r"\b([cfo])\.name = \$(\d+)", sql):
            field = _FILTER_ALIASES[alias]
            rows = [r for r in rows if r[field] == args[int(index) - 1]]

        if "ORDER BY p.price ASC" in sql:
            rows.sort(key=lambda r: (r["price"], r["product_id"]))
        elif "ORDER BY p.price DESC" in sql:
            rows.sort(key=lambda r: (r["price"], r["product_id"]), reverse=True)
        else:
            rows.sort(key=lambda r: (r["created_at"], r["product_id"]), reverse=True)
        return rows

    def fetchrow(self, sql, args):
        sql = _normalize(sql)
        self._check_fail(sql)

        if "INSERT INTO products" in sql:
            product_id = self.next_id
            self.next_id += 1
            row = dict(zip(WRITABLE_COLUMNS, args))
            row["product_id"] = product_id
            row["created_at"] = BASE_TIME + timedelta(minutes=product_id)
            self.products[product_id] = row
            return self._joined(row)

        if sql.startswith("DELETE FROM products"):
            removed = self.products.pop(args[0], None)
            return None if removed is None else {"product_id": args[0]}

        if sql.startswith("UPDATE products"):
            match = re.search(r"SET (.*) WHERE product_id = \$(\d+)", sql)
            product = self.products.get(args[int(match.group(2)) - 1])
            if product is None:
                return None
            for column, index in re.findall(r"(\w+) = \$(\d+)", match.group(1)):
                product[column] = args[int(index) - 1]
            return dict(product)

        if "FROM products p" in sql:
            product = self.products.get(args[0])
            return None if product is None else self._joined(product)

        if "FROM categories" in sql:
            name = self.categories.get(args[0])
            return None if name is None else {"category_id": args[0], "name": name}

        raise AssertionError(f"unexpected fetchrow: {sql}")

    def fetch(self, sql, args):
        sql = _normalize(sql)
        self._check_fail(sql)

        if "FROM product_images WHERE product_id = ANY" in sql:
            ids = set(args[0])
            rows = [dict(img) for img in self.images if img["product_id"] in ids]
            return sorted(rows, key=lambda r: (r["product_id"], r["sort_order"]))

        if "FROM product_images WHERE product_id = $1" in sql:
            return [{"image_url": img["image_url"]} for img in self.images_for(args[0])]

        if "FROM products p" in sql:
            return self._list_products(sql, args)

        if "FROM categories" in sql:
            return [{"category_id": k, "name": v} for k, v in sorted(self.categories.items())]

        raise AssertionError(f"unexpected fetch: {sql}")

    def execute(self, sql, args):
        sql = _normalize(sql)
        self._check_fail(sql)

        if sql.startswith("DELETE FROM product_images"):
            before = len(self.images)
            self.images = [img for img in self.images if img["product_id"] != args[0]]
            return f"DELETE {before - len(self.images)}"

        raise AssertionError(f"unexpected execute: {sql}")

    def executemany(self, sql, records):
        sql = _normalize(sql)
        self._check_fail(sql)

        if sql.startswith("INSERT INTO product_images"):
            for product_id, image_url, alt_text, sort_order in records:
                self.add_image(product_id, image_url, alt_text, sort_order)
            return None

        raise AssertionError(f"unexpected executemany: {sql}")


class FakeTransaction:
    def __init__(self, store):
        self.store = store
        self._state = None

    async def __aenter__(self):
        self._state = self.store.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.store.commits += 1
        else:
            self.store.restore(self._state)
            self.store.rollbacks += 1
        return False


class FakeConnection:
    def __init__(self, store):
        self.store = store

    def transaction(self):
        return FakeTransaction(self.store)

    async def fetchrow(self, sql, *args):
        return self.store.fetchrow(sql, args)

    async def fetch(self, sql, *args):
        return self.store.fetch(sql, args)

    async def execute(self, sql, *args):
        return self.store.execute(sql, args)

    async def executemany(self, sql, records):
        return self.store.executemany(sql, records)


class FakeAcquire:
    def __init__(self, store):
        self.store = store

    async def __aenter__(self):
        self.store.connect()
        self.store.acquired += 1
        return FakeConnection(self.store)

    async def __aexit__(self, exc_type, exc, tb):
        self.store.released += 1
        return False


class FakePool(FakeConnection):
    """Pool-level calls behave like a one-off connection (autocommit)."""

    def acquire(self):
        return FakeAcquire(self.store)

    async def fetchrow(self, sql, *args):
        self.store.connect()
        return self.store.fetchrow(sql, args)

    async def fetch(self, sql, *args):
        self.store.connect()
        return self.store.fetch(sql, args)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def fake_pool(store, monkeypatch):
    pool = FakePool(store)
    monkeypatch.setattr(db, "_pool", pool)
    return pool


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setenv("UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def client(fake_pool, upload_dir):
    from main import app

    return TestClient(app)


@pytest.fixture
def lenient_client(fake_pool, upload_dir):
    """Client that returns 500 responses instead of re-raising server errors."""
    from main import app

    return TestClient(app, raise_server_exceptions=False)
