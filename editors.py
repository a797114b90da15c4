"""Working-copy editors for the admin pages.

An editor wraps one document's working copy, supplied and owned by the caller.
Item operations only change that working copy; nothing reaches the backing
file until `persist()` is called. A rejected operation raises
`ValidationError` and leaves the working copy as it was.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Union

from models import (
    Document,
    FaqItem,
    PaymentAccount,
    PaymentConfig,
    Plan,
    Product,
    SellerNotes,
    dump_document,
    parse_document,
    split_features,
    to_number,
)
from store import DocumentStore

logger = logging.getLogger(__name__)

PLACEHOLDER_LOGO = "/placeholder.png?width=80&height=80&text=New"
NEUTRAL_ACCENT = "shadow-gray-500/50 border-gray-500/50"


class ValidationError(ValueError):
    """A form value was rejected; the message is shown to the operator."""


class ConfirmationRequired(ValidationError):
    pass


def _field(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    return "" if value is None else str(value).strip()


def _require_confirmation(confirmed: bool, what: str) -> None:
    if not confirmed:
        raise ConfirmationRequired(f"Please confirm deleting this {what}.")


class Editor:
    document_name = ""

    def __init__(self, document: Document):
        self.document = document

    @classmethod
    def from_raw(cls, raw: Any) -> "Editor":
        return cls(parse_document(cls.document_name, raw))

    def dump(self) -> Any:
        return dump_document(self.document_name, self.document)

    def persist(self, store: DocumentStore) -> None:
        """Overwrite the backing document with the whole working copy."""
        store.write(self.document_name, self.dump())
        logger.info("Persisted working copy of %s", self.document_name)


# -------------------------
# Products + plans
# -------------------------
class ProductsEditor(Editor):
    document_name = "products.json"
    document: List[Product]

    def find(self, slug: str) -> Optional[Product]:
        return next((p for p in self.document if p.slug == slug), None)

    def new_product(self) -> Product:
        return Product(
            slug=f"new-product-{uuid.uuid4().hex[:8]}",
            name="New Product",
            tagline="",
            logoUrl=PLACEHOLDER_LOGO,
            accentColorClass=NEUTRAL_ACCENT,
            plans=tuple(),
        )

    def save_product(
        self, product: Union[Product, Mapping[str, Any]], original_slug: Optional[str] = None
    ) -> Product:
        """Merge an edited product into the list by slug, or append a new one."""
        original = self.find(original_slug) if original_slug else None
        if not isinstance(product, Product):
            form = product
            product = Product(
                slug=_field(form, "slug"),
                name=_field(form, "name"),
                tagline=_field(form, "tagline"),
                logoUrl=_field(form, "logoUrl"),
                accentColorClass=_field(form, "accentColorClass"),
                plans=original.plans if original else tuple(),
            )
        if not product.name.strip() or not product.slug.strip():
            raise ValidationError("Product Name and Slug are required.")
        product = replace(product, plans=tuple(product.plans or ()))

        if original is not None and original.slug == product.slug:
            self.document[:] = [product if p.slug == original.slug else p for p in self.document]
        elif original is not None:
            if self.find(product.slug):
                raise ValidationError("New slug already exists. Choose a unique slug.")
            self.document[:] = [p for p in self.document if p.slug != original.slug] + [product]
        else:
            if self.find(product.slug):
                raise ValidationError("Slug already exists. Choose a unique slug.")
            self.document.append(product)
        return product

    def delete_product(self, slug: str, confirmed: bool = False) -> None:
        _require_confirmation(confirmed, "product")
        self.document[:] = [p for p in self.document if p.slug != slug]

    def save_plan(
        self, slug: str, plan: Union[Plan, Mapping[str, Any]], editing_index: Optional[int] = None
    ) -> Plan:
        product = self.find(slug)
        if product is None:
            raise ValidationError("No product selected.")
        if not isinstance(plan, Plan):
            plan = plan_from_form(plan)
        if not plan.id or not plan.name:
            raise ValidationError("Plan ID and Name are required.")

        plans = list(product.plans)
        if editing_index is not None:
            if not 0 <= editing_index < len(plans):
                raise ValidationError("The plan being edited no longer exists.")
            if any(p.id == plan.id for i, p in enumerate(plans) if i != editing_index):
                raise ValidationError("Plan ID already exists for this product. Choose a unique ID.")
            plans[editing_index] = plan
        else:
            if product.find_plan(plan.id):
                raise ValidationError("Plan ID already exists for this product. Choose a unique ID.")
            plans.append(plan)

        updated = replace(product, plans=tuple(plans))
        self.document[:] = [updated if p.slug == slug else p for p in self.document]
        return plan

    def delete_plan(self, slug: str, plan_id: str) -> None:
        product = self.find(slug)
        if product is None:
            raise ValidationError("No product selected.")
        updated = replace(product, plans=tuple(p for p in product.plans if p.id != plan_id))
        self.document[:] = [updated if p.slug == slug else p for p in self.document]


def _required_number(form: Mapping[str, Any], key: str, label: str) -> Any:
    raw = _field(form, key)
    if raw == "":
        raise ValidationError(f"Plan {label} is required and must be a number.")
    num = to_number(raw)
    if num is None:
        raise ValidationError(f"{key} must be a number.")
    return num


def plan_from_form(form: Mapping[str, Any]) -> Plan:
    """Build a Plan from admin form input (strings) or a JSON-like mapping."""
    sale_price = _required_number(form, "salePriceMMK", "Sale Price (MMK)")
    stock = _required_number(form, "stock", "Stock")

    official = None
    raw_official = _field(form, "officialPriceUSD")
    if raw_official:
        official = to_number(raw_official)
        if official is None:
            raise ValidationError("officialPriceUSD must be a number.")

    raw_features = form.get("features")
    if isinstance(raw_features, (list, tuple)):
        features = tuple(str(x).strip() for x in raw_features if str(x).strip())
    else:
        features = split_features("" if raw_features is None else str(raw_features))

    return Plan(
        id=_field(form, "id"),
        name=_field(form, "name"),
        salePriceMMK=sale_price,
        stock=int(stock),
        features=features,
        officialPriceUSD=official,
    )


# -------------------------
# FAQs
# -------------------------
class FaqsEditor(Editor):
    document_name = "faqs.json"
    document: List[FaqItem]

    def find(self, faq_id: str) -> Optional[FaqItem]:
        return next((f for f in self.document if f.id == faq_id), None)

    def new_faq(self) -> FaqItem:
        return FaqItem(id=str(uuid.uuid4()), question="", answer="")

    def save_faq(self, item: Union[FaqItem, Mapping[str, Any]]) -> FaqItem:
        if not isinstance(item, FaqItem):
            item = FaqItem(id=_field(item, "id"), question=_field(item, "question"), answer=_field(item, "answer"))
        if not item.question.strip() or not item.answer.strip():
            raise ValidationError("Question and Answer are required.")
        if not item.id:
            item = replace(item, id=str(uuid.uuid4()))

        if self.find(item.id):
            self.document[:] = [item if f.id == item.id else f for f in self.document]
        else:
            self.document.append(item)
        return item

    def delete_faq(self, faq_id: str, confirmed: bool = False) -> None:
        _require_confirmation(confirmed, "FAQ")
        self.document[:] = [f for f in self.document if f.id != faq_id]


# -------------------------
# Seller notes
# -------------------------
class SellerNotesEditor(Editor):
    document_name = "seller_notes.json"
    document: SellerNotes

    def set_title(self, title: str) -> None:
        self.document = replace(self.document, title=(title or "").strip())

    def save_note(self, text: str, editing_index: Optional[int] = None) -> None:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Note text cannot be empty.")
        notes = list(self.document.notes)
        if editing_index is not None:
            if not 0 <= editing_index < len(notes):
                raise ValidationError("The note being edited no longer exists.")
            notes[editing_index] = text
        else:
            notes.append(text)
        self.document = replace(self.document, notes=tuple(notes))

    def delete_note(self, index: int, confirmed: bool = False) -> None:
        _require_confirmation(confirmed, "note")
        notes = [n for i, n in enumerate(self.document.notes) if i != index]
        self.document = replace(self.document, notes=tuple(notes))


# -------------------------
# Payment configuration
# -------------------------
class PaymentConfigEditor(Editor):
    document_name = "payment_config.json"
    document: PaymentConfig

    SETTINGS = (
        "telegramContact",
        "telegramLink",
        "paymentInstructionsTitle",
        "paymentInstructions",
        "confirmationNote",
    )

    def update_settings(self, **fields: Any) -> None:
        unknown = sorted(set(fields) - set(self.SETTINGS))
        if unknown:
            raise ValidationError(f"Unknown setting: {', '.join(unknown)}")
        clean = {k: ("" if v is None else str(v).strip()) for k, v in fields.items()}
        if "telegramLink" in clean and not clean["telegramLink"]:
            clean["telegramLink"] = None
        self.document = replace(self.document, **clean)

    def save_account(
        self, account: Union[PaymentAccount, Mapping[str, Any]], editing_index: Optional[int] = None
    ) -> PaymentAccount:
        if not isinstance(account, PaymentAccount):
            account = PaymentAccount(
                type=_field(account, "type"),
                name=_field(account, "name"),
                number=_field(account, "number"),
                details=_field(account, "details"),
            )
        if not account.type or not account.name or not account.number:
            raise ValidationError("Account Type, Name, and Number are required.")

        accounts = list(self.document.accounts)
        if editing_index is not None:
            if not 0 <= editing_index < len(accounts):
                raise ValidationError("The account being edited no longer exists.")
            accounts[editing_index] = account
        else:
            accounts.append(account)
        self.document = replace(self.document, accounts=tuple(accounts))
        return account

    def delete_account(self, index: int, confirmed: bool = False) -> None:
        _require_confirmation(confirmed, "payment account")
        accounts = [a for i, a in enumerate(self.document.accounts) if i != index]
        self.document = replace(self.document, accounts=tuple(accounts))


EDITORS = {
    "products": ProductsEditor,
    "faqs": FaqsEditor,
    "notes": SellerNotesEditor,
    "payment-config": PaymentConfigEditor,
}
