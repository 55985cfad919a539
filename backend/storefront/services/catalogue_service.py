# Overview: Service-layer operations for the catalogue; lookups used by checkout plus thin data entry.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, MasterOption, SubMasterOption, Product, Variant
from ..models.catalogue import MASTER_TYPES, MASTER_TYPE_LABELS
from ..validation import ValidationError, ConflictError, NotFoundError, enforce_price_cents, parse_id
from .concurrency import lock_for_update
from .inventory_service import derive_stock_state, parse_stock_value


def _clean_text(value, name: str, *, min_len: int = 0, max_len: int = 500, required: bool = True) -> str:
    if value is None and not required:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} is required", fields={name: [f"{name} is required"]})
    cleaned = value.strip()
    if len(cleaned) < min_len or len(cleaned) > max_len:
        message = f"{name} must be between {min_len} and {max_len} characters"
        raise ValidationError(message, fields={name: [message]})
    return cleaned


def _commit_unique(conflict_message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(conflict_message)


# =============================================================================
# LOOKUPS (used by the order path)
# =============================================================================

def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def get_products(product_ids) -> dict[int, Product]:
    """Fetch many products in one query, keyed by id. Missing ids are simply absent."""
    ids = set(product_ids)
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


def get_variants_by_product(product_ids, for_update: bool = False) -> dict[int, list[Variant]]:
    """
    Every variant of the given products, grouped by product id in id order.

    With for_update the rows stay locked until the caller commits.
    """
    ids = set(product_ids)
    if not ids:
        return {}
    query = db.session.query(Variant).filter(Variant.product_id.in_(ids)).order_by(Variant.id.asc())
    if for_update:
        query = lock_for_update(query)
    grouped: dict[int, list[Variant]] = {}
    for variant in query.all():
        grouped.setdefault(variant.product_id, []).append(variant)
    return grouped


def list_products(category: str | None = None, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(name, description=None) -> Category:
    name = _clean_text(name, "name", min_len=2, max_len=120)
    description = _clean_text(description, "description", max_len=500, required=False)

    if db.session.query(Category).filter_by(name=name).first():
        raise ConflictError("Category already exists")

    category = Category(name=name, description=description)
    db.session.add(category)
    _commit_unique("Category already exists")
    return category


# =============================================================================
# MASTER / SUB-MASTER OPTIONS
# =============================================================================

def _parse_sort_order(value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("sort_order must be an integer")
    return value


def list_master_options(types=None) -> list[MasterOption]:
    query = db.session.query(MasterOption)
    if types:
        query = query.filter(MasterOption.type.in_(list(types)))
    return query.order_by(MasterOption.type.asc(), MasterOption.sort_order.asc(), MasterOption.name.asc()).all()


def group_master_options(options) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {t: [] for t in MASTER_TYPES}
    for option in options:
        grouped.setdefault(option.type, []).append(option.to_dict())
    return grouped


def parse_master_types(value: str | None) -> list[str] | None:
    """Parse a comma-separated ?types= filter; unknown types are ignored."""
    if not value:
        return None
    requested = [item.strip() for item in value.split(",")]
    requested = [item for item in requested if item in MASTER_TYPES]
    return requested or None


def create_master_option(type_, name, description=None, sort_order=None) -> MasterOption:
    if type_ not in MASTER_TYPES:
        raise ValidationError(f"type must be one of {', '.join(MASTER_TYPES)}")
    name = _clean_text(name, "name", min_len=1, max_len=120)
    description = _clean_text(description, "description", max_len=500, required=False)
    conflict = f"{MASTER_TYPE_LABELS[type_]} already exists"

    if db.session.query(MasterOption).filter_by(type=type_, name=name).first():
        raise ConflictError(conflict)

    option = MasterOption(
        type=type_,
        name=name,
        description=description,
        sort_order=_parse_sort_order(sort_order),
    )
    db.session.add(option)
    _commit_unique(conflict)
    return option


def list_submaster_options(master_id: int | None = None) -> list[SubMasterOption]:
    query = db.session.query(SubMasterOption)
    if master_id:
        query = query.filter_by(master_id=master_id)
    return query.order_by(SubMasterOption.sort_order.asc(), SubMasterOption.name.asc()).all()


def create_submaster_option(master_id, name, parent_id=None, description=None, sort_order=None) -> SubMasterOption:
    """
    Create a sub-master under a master option.

    The parent (when given) must hang off the same master. Uniqueness is
    checked on (master_id, parent_id, name) in code as well as by the table
    constraint, since SQL unique constraints treat NULL parents as distinct.
    """
    master_id = parse_id(master_id, "master_id")
    master = db.session.get(MasterOption, master_id)
    if master is None:
        raise NotFoundError("Master option not found")

    if parent_id not in (None, ""):
        parent_id = parse_id(parent_id, "parent_id")
        parent = db.session.get(SubMasterOption, parent_id)
        if parent is None:
            raise NotFoundError("Parent sub-master not found")
        if parent.master_id != master.id:
            raise ValidationError("Parent sub-master belongs to a different master")
    else:
        parent_id = None

    name = _clean_text(name, "name", min_len=1, max_len=120)
    description = _clean_text(description, "description", max_len=500, required=False)

    existing = db.session.query(SubMasterOption).filter_by(
        master_id=master.id, parent_id=parent_id, name=name
    ).first()
    if existing:
        raise ConflictError("Sub-master already exists")

    option = SubMasterOption(
        master_id=master.id,
        master_type=master.type,
        parent_id=parent_id,
        name=name,
        description=description,
        sort_order=_parse_sort_order(sort_order),
    )
    db.session.add(option)
    _commit_unique("Sub-master already exists")
    return option


# =============================================================================
# PRODUCTS
# =============================================================================

def create_product(data: dict) -> Product:
    """
    Create a product with optional variants.

    Variant stock goes through derive_stock_state so a zero-stock variant
    is never created purchasable.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    name = _clean_text(data.get("name"), "name", min_len=2, max_len=255)
    category = _clean_text(data.get("category"), "category", min_len=1, max_len=120)
    if not db.session.query(Category).filter_by(name=category).first():
        raise NotFoundError("Category not found")

    product = Product(
        name=name,
        category=category,
        condition=_clean_text(data.get("condition"), "condition", max_len=64, required=False),
        image_url=_clean_text(data.get("image_url"), "image_url", max_len=512, required=False),
        price_cents=enforce_price_cents(data.get("price_cents")),
        is_active=bool(data.get("is_active", True)),
    )

    company_id = data.get("company_id")
    if company_id is not None:
        company = db.session.get(MasterOption, parse_id(company_id, "company_id"))
        if company is None or company.type != "company":
            raise NotFoundError("Company master not found")
        product.company_id = company.id

    variants = []
    labels = set()
    for raw in data.get("variants") or []:
        if not isinstance(raw, dict):
            raise ValidationError("Invalid variant")
        label = _clean_text(raw.get("label"), "variant label", min_len=1, max_len=255)
        if label in labels:
            raise ConflictError(f"Duplicate variant label: {label}")
        labels.add(label)

        stock, in_stock = derive_stock_state(
            parse_stock_value(raw.get("stock", 0)),
            raw.get("in_stock") if isinstance(raw.get("in_stock"), bool) else None,
        )
        variants.append(Variant(
            label=label,
            price_cents=enforce_price_cents(raw.get("price_cents", product.price_cents), "variant price_cents"),
            color=_clean_text(raw.get("color"), "color", max_len=64, required=False),
            is_default=bool(raw.get("is_default", False)),
            stock=stock,
            in_stock=in_stock,
        ))

    product.variants.extend(variants)
    db.session.add(product)
    _commit_unique("Product variant already exists")
    return product
