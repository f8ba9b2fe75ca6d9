"""
Tests for the editor config builder.

Run with: pytest tests/test_editor_config.py -v
"""
import jwt
import pytest

from core.editor_config import build_config, document_type_for, file_type_for
from core.errors import NoFileError, NotFoundError

CALLBACK = "https://api.test/onlyoffice/callback"
FILE = {
    "current_file_path": "onlyoffice/doc1/latest.docx",
    "current_file_signed_url": "https://blobs.test/onlyoffice/doc1/latest.docx?sig=1",
}


@pytest.fixture
def blank_doc(store):
    """A document materialized the way create-blank does it."""
    return store.materialize_file("doc1", FILE, title="Quarterly report", owner_id="u1")


class TestErrors:
    def test_missing_document(self, store):
        with pytest.raises(NotFoundError):
            build_config(store, "nope", callback_url=CALLBACK)

    def test_document_without_file(self, store):
        store.create_document("doc1", "Empty")
        with pytest.raises(NoFileError):
            build_config(store, "doc1", callback_url=CALLBACK)


class TestConfigShape:
    def test_blank_document_first_key(self, store, blank_doc):
        """A freshly created blank document is at v1."""
        assert blank_doc.version == 1
        assert blank_doc.current_file_path
        cfg = build_config(store, "doc1", callback_url=CALLBACK)
        assert cfg["document"]["key"] == "doc1:v1"

    def test_fields(self, store, blank_doc):
        cfg = build_config(store, "doc1", callback_url=CALLBACK, user_id="42", user_name="Ada")
        assert cfg["documentType"] == "word"
        assert cfg["document"]["fileType"] == "docx"
        assert cfg["document"]["title"] == "Quarterly report"
        assert cfg["document"]["url"] == FILE["current_file_signed_url"]
        assert all(cfg["document"]["permissions"].values())
        assert set(cfg["document"]["permissions"]) == {
            "edit", "download", "print", "review", "comment", "fillForms", "copy",
        }
        assert cfg["editorConfig"]["mode"] == "edit"
        assert cfg["editorConfig"]["callbackUrl"] == CALLBACK
        assert cfg["editorConfig"]["user"] == {"id": "42", "name": "Ada"}
        assert cfg["editorConfig"]["customization"]["forcesave"] is True
        assert "token" not in cfg

    def test_default_user(self, store, blank_doc):
        cfg = build_config(store, "doc1", callback_url=CALLBACK)
        assert cfg["editorConfig"]["user"] == {"id": "1", "name": "User"}

    def test_signed_when_secret_configured(self, store, blank_doc):
        cfg = build_config(store, "doc1", callback_url=CALLBACK, jwt_secret="s3cret")
        claims = jwt.decode(cfg["token"], "s3cret", algorithms=["HS256"])
        assert claims["document"]["key"] == "doc1:v1"
        assert claims["editorConfig"]["callbackUrl"] == CALLBACK


class TestKeyDiscipline:
    def test_deterministic_without_saves(self, store, blank_doc):
        first = build_config(store, "doc1", callback_url=CALLBACK)
        second = build_config(store, "doc1", callback_url=CALLBACK, user_id="other")
        assert first["document"]["key"] == second["document"]["key"]

    def test_title_edit_keeps_key(self, store, blank_doc):
        before = build_config(store, "doc1", callback_url=CALLBACK)["document"]["key"]
        store.update_document("doc1", {"title": "Renamed"})
        after = build_config(store, "doc1", callback_url=CALLBACK)
        assert after["document"]["key"] == before
        assert after["document"]["title"] == "Renamed"

    def test_fresh_after_save(self, store, blank_doc):
        issued = {build_config(store, "doc1", callback_url=CALLBACK)["document"]["key"]}
        for _ in range(3):
            store.increment_version("doc1", FILE)
            key = build_config(store, "doc1", callback_url=CALLBACK)["document"]["key"]
            assert key not in issued
            issued.add(key)


class TestFileTypes:
    def test_file_type_from_path(self):
        assert file_type_for("onlyoffice/x/latest.docx") == "docx"
        assert file_type_for("a/b/sheet.XLSX") == "xlsx"
        assert file_type_for(None) == "docx"
        assert file_type_for("noext") == "docx"

    def test_document_type(self):
        assert document_type_for("docx") == "word"
        assert document_type_for("xlsx") == "cell"
        assert document_type_for("pptx") == "slide"
        assert document_type_for("pdf") == "pdf"
        assert document_type_for("weird") == "word"
