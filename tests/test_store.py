"""Tests for the file-backed document store."""

import json
import os
import threading

import pytest

from store import (
    ALLOWED_FILES,
    AccessDenied,
    DocumentStore,
    InvalidName,
    IOFailure,
    ParseFailure,
    default_for,
    is_allowed,
)


class TestNames:
    """Tests for the document allow-list."""

    def test_only_four_documents_allowed(self):
        """Exactly the four storefront documents are addressable."""
        assert set(ALLOWED_FILES) == {"products.json", "faqs.json", "seller_notes.json", "payment_config.json"}

    @pytest.mark.parametrize("name", ["", None, "../products.json", "secrets.json", "products", "PRODUCTS.JSON"])
    def test_rejects_other_names(self, name):
        """Anything outside the allow-list is refused."""
        assert not is_allowed(name)

    def test_bad_name_fails_before_access_check(self, data_dir):
        """An invalid name is reported as such even in production mode."""
        store = DocumentStore(str(data_dir), development=False)
        with pytest.raises(InvalidName):
            store.read("../etc/passwd")
        with pytest.raises(InvalidName):
            store.load("other.json")


class TestDefaults:
    """Tests for default document values."""

    def test_seller_notes_default(self):
        assert default_for("seller_notes.json") == {"title": "Important Seller Notes", "notes": []}

    def test_payment_config_default_keys(self):
        assert set(default_for("payment_config.json")) == {
            "telegramContact",
            "paymentInstructionsTitle",
            "paymentInstructions",
            "accounts",
            "confirmationNote",
        }

    def test_defaults_are_fresh_copies(self):
        """Mutating a returned default never leaks into the next call."""
        first = default_for("seller_notes.json")
        first["notes"].append("x")
        assert default_for("seller_notes.json")["notes"] == []


class TestRead:
    """Tests for the gated admin read."""

    @pytest.mark.parametrize("name", ALLOWED_FILES)
    def test_creates_missing_document_with_default(self, seeded_dir, name):
        """Reading a deleted document returns its default and recreates the file."""
        (seeded_dir / name).unlink()
        store = DocumentStore(str(seeded_dir), development=True)
        assert store.read(name) == default_for(name)
        assert (seeded_dir / name).exists()
        assert json.loads((seeded_dir / name).read_text(encoding="utf-8")) == default_for(name)

    def test_creates_data_dir_when_missing(self, tmp_path):
        store = DocumentStore(str(tmp_path / "nested" / "data"), development=True)
        assert store.read("seller_notes.json")["title"] == "Important Seller Notes"

    def test_denied_outside_development(self, data_dir):
        store = DocumentStore(str(data_dir), development=False)
        with pytest.raises(AccessDenied):
            store.read("products.json")
        assert not (data_dir / "products.json").exists()

    def test_malformed_json_is_parse_failure(self, data_dir):
        (data_dir / "faqs.json").write_text("{not json", encoding="utf-8")
        store = DocumentStore(str(data_dir), development=True)
        with pytest.raises(ParseFailure) as exc:
            store.read("faqs.json")
        assert exc.value.path.endswith("faqs.json")

    def test_malformed_file_is_left_untouched(self, data_dir):
        """A parse failure never overwrites the file with a default."""
        (data_dir / "faqs.json").write_text("{not json", encoding="utf-8")
        store = DocumentStore(str(data_dir), development=True)
        with pytest.raises(ParseFailure):
            store.read("faqs.json")
        assert (data_dir / "faqs.json").read_text(encoding="utf-8") == "{not json"


class TestWrite:
    """Tests for whole-document writes."""

    def test_round_trips_unicode(self, data_dir):
        store = DocumentStore(str(data_dir), development=True)
        store.write("seller_notes.json", {"title": "မှတ်ချက်", "notes": ["✅ ok"]})
        raw = (data_dir / "seller_notes.json").read_text(encoding="utf-8")
        assert "မှတ်ချက်" in raw
        assert raw.startswith("{\n  ")
        assert store.read("seller_notes.json") == {"title": "မှတ်ချက်", "notes": ["✅ ok"]}

    def test_no_schema_check(self, data_dir):
        """Any JSON value is accepted as a whole document."""
        store = DocumentStore(str(data_dir), development=True)
        store.write("products.json", {"not": "a list"})
        assert store.read("products.json") == {"not": "a list"}

    def test_leaves_no_temp_file(self, data_dir):
        store = DocumentStore(str(data_dir), development=True)
        store.write("faqs.json", [])
        assert sorted(os.listdir(data_dir)) == ["faqs.json"]

    def test_denied_outside_development(self, data_dir):
        store = DocumentStore(str(data_dir), development=False)
        with pytest.raises(AccessDenied):
            store.write("faqs.json", [])
        assert not (data_dir / "faqs.json").exists()

    def test_unserializable_document(self, data_dir):
        """A value JSON cannot encode fails without touching the file."""
        store = DocumentStore(str(data_dir), development=True)
        store.write("faqs.json", [])
        with pytest.raises(IOFailure):
            store.write("faqs.json", [object()])
        assert store.read("faqs.json") == []

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_numbers_rejected(self, data_dir, value):
        """NaN and Infinity never reach the file, which stays strict JSON."""
        store = DocumentStore(str(data_dir), development=True)
        store.write("faqs.json", [{"id": "a"}])
        with pytest.raises(IOFailure):
            store.write("faqs.json", [{"id": value}])
        assert json.loads((data_dir / "faqs.json").read_text(encoding="utf-8")) == [{"id": "a"}]

    def test_concurrent_writers_all_succeed(self, data_dir):
        """Parallel writes of one document never fail; one complete write wins."""
        store = DocumentStore(str(data_dir), development=True)
        errors = []

        def writer(n):
            for i in range(30):
                try:
                    store.write("products.json", [{"slug": f"w{n}-{i}", "plans": []}])
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        saved = store.read("products.json")
        assert len(saved) == 1 and saved[0]["slug"].startswith("w")
        assert sorted(os.listdir(data_dir)) == ["products.json"]

    def test_last_write_wins(self, data_dir):
        store = DocumentStore(str(data_dir), development=True)
        store.write("faqs.json", [{"id": "a"}])
        store.write("faqs.json", [{"id": "b"}])
        assert store.read("faqs.json") == [{"id": "b"}]


class TestLoad:
    """Tests for the storefront read path."""

    def test_missing_returns_default_without_creating(self, data_dir):
        store = DocumentStore(str(data_dir))
        assert store.load("payment_config.json") == default_for("payment_config.json")
        assert not (data_dir / "payment_config.json").exists()

    def test_not_gated(self, seeded_dir):
        store = DocumentStore(str(seeded_dir), development=False)
        assert store.load("faqs.json")[0]["id"] == "f1"

    def test_parse_failure_propagates(self, data_dir):
        (data_dir / "products.json").write_text("[", encoding="utf-8")
        with pytest.raises(ParseFailure):
            DocumentStore(str(data_dir)).load("products.json")
