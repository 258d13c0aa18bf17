"""
Catalog loader: reads products and variants from a CSV file and upserts them,
then makes sure a default warehouse and an admin user exist so stock can be
received right away.

    python -m stockledger.populate_db catalog.csv --admin admin@example.com
"""

import argparse
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

import pandas as pd
from sqlalchemy.orm import Session

from stockledger.config import settings
from stockledger.database import SessionLocal, init_db
from stockledger.models.product import Product, Variant
from stockledger.models.users import User
from stockledger.models.warehouse import Warehouse

logger = logging.getLogger(__name__)

# Configuration
REQUIRED_COLUMNS = ["product_name", "sku"]
DEFAULTS = {
    "product_code": None,
    "category": None,
    "variant_name": None,
    "price": 0,
    "cost_price": 0,
    "tax_rate": 0,
    "hsn_code": None,
    "min_stock_level": settings.DEFAULT_MIN_STOCK_LEVEL,
    "reorder_quantity": 50,
}
DEFAULT_WAREHOUSE = "Main Warehouse"
# End Configuration


@dataclass
class LoadSummary:
    products_created: int = 0
    variants_created: int = 0
    variants_updated: int = 0


def read_catalog(source: Union[str, pd.DataFrame]) -> pd.DataFrame:
    """Load and clean the catalog frame; rows without a product name or SKU are dropped."""
    df = source.copy() if isinstance(source, pd.DataFrame) else pd.read_csv(source, dtype={"sku": str, "product_code": str, "hsn_code": str})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Catalog is missing columns: {', '.join(missing)}")

    for column, default in DEFAULTS.items():
        if column not in df.columns:
            df[column] = default

    df["product_name"] = df["product_name"].astype("string").str.strip()
    df["sku"] = df["sku"].astype("string").str.strip()
    df.dropna(subset=REQUIRED_COLUMNS, inplace=True)
    df = df[(df["product_name"] != "") & (df["sku"] != "")]

    # Last occurrence of a SKU wins
    df = df.drop_duplicates(subset=["sku"], keep="last").copy()

    for column in ("price", "cost_price", "tax_rate"):
        df[column] = pd.to_numeric(df[column], errors="coerce").fillna(DEFAULTS[column])
    for column in ("min_stock_level", "reorder_quantity"):
        df[column] = pd.to_numeric(df[column], errors="coerce").fillna(DEFAULTS[column]).astype(int)

    # pandas NA values must reach the ORM as None
    return df.astype(object).where(df.notna(), None)


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def load_catalog(db: Session, source: Union[str, pd.DataFrame]) -> LoadSummary:
    """Upsert products (keyed by code, falling back to name) and variants (keyed by SKU)."""
    df = read_catalog(source)
    summary = LoadSummary()
    product_cache = {}

    for row in df.to_dict(orient="records"):
        product_key = row["product_code"] or row["product_name"]
        product = product_cache.get(product_key)
        if product is None:
            query = db.query(Product)
            if row["product_code"]:
                product = query.filter(Product.code == row["product_code"]).first()
            else:
                product = query.filter(Product.name == row["product_name"]).first()
            if product is None:
                product = Product(name=row["product_name"], code=row["product_code"], category=row["category"])
                db.add(product)
                db.flush()
                summary.products_created += 1
            product_cache[product_key] = product

        fields = dict(
            product_id=product.id,
            name=row["variant_name"],
            price=_money(row["price"]),
            cost_price=_money(row["cost_price"]),
            tax_rate=_money(row["tax_rate"]),
            hsn_code=row["hsn_code"],
            min_stock_level=int(row["min_stock_level"]),
            reorder_quantity=int(row["reorder_quantity"]),
        )
        variant = db.query(Variant).filter(Variant.sku == row["sku"]).first()
        if variant is None:
            db.add(Variant(sku=row["sku"], **fields))
            summary.variants_created += 1
        else:
            for name, value in fields.items():
                setattr(variant, name, value)
            summary.variants_updated += 1

    db.commit()
    logger.info(
        "catalog loaded",
        extra={
            "products_created": summary.products_created,
            "variants_created": summary.variants_created,
            "variants_updated": summary.variants_updated,
        },
    )
    return summary


def ensure_warehouse(db: Session, name: str = DEFAULT_WAREHOUSE) -> Warehouse:
    warehouse = db.query(Warehouse).filter(Warehouse.name == name).first()
    if not warehouse:
        warehouse = Warehouse(name=name, is_active=True)
        db.add(warehouse)
        db.commit()
        db.refresh(warehouse)
    return warehouse


def ensure_admin(db: Session, email: str) -> User:
    # Existing users are left untouched
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(email=email, role="ADMIN", first_name="Admin")
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def populate_database(csv_path: str, admin_email: Optional[str] = None, warehouse: str = DEFAULT_WAREHOUSE):
    """Main execution function to populate database."""
    init_db()
    session = SessionLocal()
    try:
        summary = load_catalog(session, csv_path)
        ensure_warehouse(session, warehouse)
        if admin_email:
            ensure_admin(session, admin_email)
    finally:
        session.close()
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    parser = argparse.ArgumentParser(description="Load the product catalog from a CSV file.")
    parser.add_argument("csv_path")
    parser.add_argument("--admin", dest="admin_email", default=None, help="Admin user email to create")
    parser.add_argument("--warehouse", default=DEFAULT_WAREHOUSE)
    args = parser.parse_args()

    result = populate_database(args.csv_path, args.admin_email, args.warehouse)
    print(
        f"Products created: {result.products_created}, "
        f"variants created: {result.variants_created}, "
        f"variants updated: {result.variants_updated}"
    )
