"""Tests for the operator data CLI."""

import json

from datatool import main
from conftest import read_doc, write_doc


class TestDatatool:
    def test_show_creates_default(self, data_dir, capsys):
        assert main(["--data", str(data_dir), "show", "seller_notes.json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"title": "Important Seller Notes", "notes": []}
        assert (data_dir / "seller_notes.json").exists()

    def test_check_reports_each_document(self, seeded_dir, capsys):
        (seeded_dir / "faqs.json").unlink()
        assert main(["--data", str(seeded_dir), "check"]) == 0
        out = capsys.readouterr().out
        assert "products.json: OK" in out
        assert "faqs.json: MISSING" in out

    def test_check_fails_on_broken_json(self, seeded_dir, capsys):
        (seeded_dir / "products.json").write_text("{", encoding="utf-8")
        assert main(["--data", str(seeded_dir), "check"]) == 1
        assert "products.json: ERROR" in capsys.readouterr().out

    def test_import(self, data_dir, tmp_path):
        src = tmp_path / "faqs.json"
        src.write_text('[{"id": "a", "question": "Q", "answer": "A"}]', encoding="utf-8")
        assert main(["--data", str(data_dir), "import", "faqs.json", str(src)]) == 0
        assert read_doc(data_dir, "faqs.json")[0]["id"] == "a"

    def test_import_unreadable_source(self, data_dir, tmp_path):
        src = tmp_path / "bad.json"
        src.write_text("{", encoding="utf-8")
        assert main(["--data", str(data_dir), "import", "faqs.json", str(src)]) == 1
        assert not (data_dir / "faqs.json").exists()

    def test_reset_needs_yes(self, seeded_dir):
        assert main(["--data", str(seeded_dir), "reset", "faqs.json"]) == 2
        assert read_doc(seeded_dir, "faqs.json")[0]["id"] == "f1"
        assert main(["--data", str(seeded_dir), "reset", "faqs.json", "--yes"]) == 0
        assert read_doc(seeded_dir, "faqs.json") == []

    def test_show_broken_document(self, data_dir, capsys):
        write_doc(data_dir, "faqs.json", [])
        (data_dir / "faqs.json").write_text("[", encoding="utf-8")
        assert main(["--data", str(data_dir), "show", "faqs.json"]) == 1
        assert "ERROR" in capsys.readouterr().err
