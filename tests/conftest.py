"""Shared pytest fixtures for the storefront and admin tests."""

import json

import pytest

from app import create_app


SAMPLE_PRODUCTS = [
    {
        "slug": "coursera-plus",
        "name": "Coursera Plus",
        "tagline": "Unlimited learning",
        "logoUrl": "",
        "accentColorClass": "shadow-cyan-500/50 border-cyan-500/50",
        "plans": [
            {
                "id": "1m",
                "name": "1 Month",
                "officialPriceUSD": 59,
                "salePriceMMK": 15000,
                "stock": 3,
                "features": ["✅ Certificates", "❌ Degrees", "7000+ courses"],
            },
            {
                "id": "1y",
                "name": "1 Year",
                "salePriceMMK": 120000,
                "stock": 0,
                "features": [],
            },
        ],
    },
    {
        "slug": "canva-pro",
        "name": "Canva Pro",
        "tagline": "Design anything",
        "logoUrl": "https://example.com/canva.png",
        "accentColorClass": "shadow-violet-500/50 border-violet-500/50",
        "plans": [],
    },
]

SAMPLE_PAYMENT_CONFIG = {
    "telegramContact": "@replipay_shop",
    "paymentInstructionsTitle": "How to Pay",
    "paymentInstructions": "Transfer the exact amount.",
    "accounts": [{"type": "KBZPay", "name": "Aung Aung", "number": "09123456789"}],
    "confirmationNote": "We will deliver within 24 hours.",
}


def write_doc(data_dir, name, doc):
    """Write a raw JSON document into the data directory."""
    (data_dir / name).write_text(json.dumps(doc, ensure_ascii=False), encoding="utf-8")


def read_doc(data_dir, name):
    """Read a raw JSON document from the data directory."""
    return json.loads((data_dir / name).read_text(encoding="utf-8"))


@pytest.fixture
def data_dir(tmp_path):
    """An empty data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def seeded_dir(data_dir):
    """A data directory holding sample products and payment configuration."""
    write_doc(data_dir, "products.json", SAMPLE_PRODUCTS)
    write_doc(data_dir, "payment_config.json", SAMPLE_PAYMENT_CONFIG)
    write_doc(data_dir, "faqs.json", [{"id": "f1", "question": "Is it legal?", "answer": "Yes."}])
    write_doc(data_dir, "seller_notes.json", {"title": "Read First", "notes": ["Accounts are shared."]})
    return data_dir


@pytest.fixture
def app(seeded_dir):
    """App running in development mode over the seeded data directory."""
    app = create_app({"APP_ENV": "development", "DATA_DIR": str(seeded_dir), "SECRET_KEY": "test", "TESTING": True})
    return app


@pytest.fixture
def prod_app(seeded_dir):
    """App running in production mode over the seeded data directory."""
    return create_app({"APP_ENV": "production", "DATA_DIR": str(seeded_dir), "SECRET_KEY": "test", "TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def prod_client(prod_app):
    return prod_app.test_client()
