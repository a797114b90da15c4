from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

Number = Union[int, float]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def to_number(value: Any) -> Optional[Number]:
    """Coerce JSON or form input to int/float; None when blank or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    raw = str(value).strip().replace(" ", "").replace(",", "")
    if not raw:
        return None
    try:
        num = float(raw)
    except ValueError:
        return None
    if num != num or num in (float("inf"), float("-inf")):
        return None
    return int(num) if num.is_integer() and "." not in raw and "e" not in raw.lower() else num


def _features(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return split_features(value)
    if not isinstance(value, (list, tuple)):
        return tuple()
    return tuple(_text(x) for x in value)


def split_features(raw: str) -> Tuple[str, ...]:
    """Comma-separated form input -> trimmed, non-blank feature strings."""
    return tuple(s.strip() for s in (raw or "").split(",") if s.strip())


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    salePriceMMK: Number = 0
    stock: int = 0
    features: Tuple[str, ...] = field(default_factory=tuple)
    officialPriceUSD: Optional[Number] = None

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Plan":
        stock = to_number(raw.get("stock"))
        return cls(
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            salePriceMMK=to_number(raw.get("salePriceMMK")) or 0,
            stock=int(stock) if stock is not None else 0,
            features=_features(raw.get("features")),
            officialPriceUSD=to_number(raw.get("officialPriceUSD")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "name": self.name}
        if self.officialPriceUSD is not None:
            out["officialPriceUSD"] = self.officialPriceUSD
        out["salePriceMMK"] = self.salePriceMMK
        out["stock"] = self.stock
        out["features"] = list(self.features)
        return out


@dataclass(frozen=True)
class Product:
    slug: str
    name: str
    tagline: str = ""
    logoUrl: str = ""
    accentColorClass: str = ""
    plans: Tuple[Plan, ...] = field(default_factory=tuple)

    def find_plan(self, plan_id: str) -> Optional[Plan]:
        return next((p for p in self.plans if p.id == plan_id), None)

    def total_stock(self) -> int:
        return sum(max(p.stock, 0) for p in self.plans)

    def lowest_price(self) -> Optional[Number]:
        if not self.plans:
            return None
        return min(p.salePriceMMK for p in self.plans)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Product":
        plans = raw.get("plans")
        return cls(
            slug=_text(raw.get("slug")),
            name=_text(raw.get("name")),
            tagline=_text(raw.get("tagline")),
            logoUrl=_text(raw.get("logoUrl")),
            accentColorClass=_text(raw.get("accentColorClass")),
            plans=tuple(Plan.from_dict(p) for p in plans if isinstance(p, dict)) if isinstance(plans, list) else tuple(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "tagline": self.tagline,
            "logoUrl": self.logoUrl,
            "accentColorClass": self.accentColorClass,
            "plans": [p.to_dict() for p in self.plans],
        }


@dataclass(frozen=True)
class FaqItem:
    id: str
    question: str
    answer: str

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FaqItem":
        return cls(id=_text(raw.get("id")), question=_text(raw.get("question")), answer=_text(raw.get("answer")))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "question": self.question, "answer": self.answer}


@dataclass(frozen=True)
class SellerNotes:
    title: str = ""
    notes: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SellerNotes":
        notes = raw.get("notes")
        return cls(
            title=_text(raw.get("title")),
            notes=tuple(_text(n) for n in notes) if isinstance(notes, list) else tuple(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "notes": list(self.notes)}


@dataclass(frozen=True)
class PaymentAccount:
    type: str
    name: str
    number: str
    details: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PaymentAccount":
        details = raw.get("details")
        return cls(
            type=_text(raw.get("type")),
            name=_text(raw.get("name")),
            number=_text(raw.get("number")),
            details=None if details is None else _text(details),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {"type": self.type, "name": self.name, "number": self.number}
        if self.details is not None:
            out["details"] = self.details
        return out


@dataclass(frozen=True)
class PaymentConfig:
    telegramContact: str = ""
    paymentInstructionsTitle: str = ""
    paymentInstructions: str = ""
    accounts: Tuple[PaymentAccount, ...] = field(default_factory=tuple)
    confirmationNote: str = ""
    telegramLink: Optional[str] = None

    def support_link(self) -> str:
        if self.telegramLink:
            return self.telegramLink
        handle = (self.telegramContact or "replipaysupport").replace("@", "")
        return f"https://t.me/{handle}"

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PaymentConfig":
        accounts = raw.get("accounts")
        link = raw.get("telegramLink")
        return cls(
            telegramContact=_text(raw.get("telegramContact")),
            paymentInstructionsTitle=_text(raw.get("paymentInstructionsTitle")),
            paymentInstructions=_text(raw.get("paymentInstructions")),
            accounts=tuple(PaymentAccount.from_dict(a) for a in accounts if isinstance(a, dict))
            if isinstance(accounts, list)
            else tuple(),
            confirmationNote=_text(raw.get("confirmationNote")),
            telegramLink=None if link is None else _text(link),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"telegramContact": self.telegramContact}
        if self.telegramLink is not None:
            out["telegramLink"] = self.telegramLink
        out.update(
            {
                "paymentInstructionsTitle": self.paymentInstructionsTitle,
                "paymentInstructions": self.paymentInstructions,
                "accounts": [a.to_dict() for a in self.accounts],
                "confirmationNote": self.confirmationNote,
            }
        )
        return out


Document = Union[List[Product], List[FaqItem], SellerNotes, PaymentConfig]


def parse_document(name: str, raw: Any) -> Document:
    """Map a raw JSON document to its typed shape, keyed by document name."""
    if name == "products.json":
        return [Product.from_dict(x) for x in raw if isinstance(x, dict)] if isinstance(raw, list) else []
    if name == "faqs.json":
        return [FaqItem.from_dict(x) for x in raw if isinstance(x, dict)] if isinstance(raw, list) else []
    if name == "seller_notes.json":
        return SellerNotes.from_dict(raw if isinstance(raw, dict) else {})
    if name == "payment_config.json":
        return PaymentConfig.from_dict(raw if isinstance(raw, dict) else {})
    raise ValueError(f"Unknown document: {name}")


def dump_document(name: str, value: Document) -> Any:
    if name in ("products.json", "faqs.json"):
        return [x.to_dict() for x in value]  # type: ignore[union-attr]
    if name in ("seller_notes.json", "payment_config.json"):
        return value.to_dict()  # type: ignore[union-attr]
    raise ValueError(f"Unknown document: {name}")
