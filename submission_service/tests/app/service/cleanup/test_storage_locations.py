import pytest

from submission_service.app.service.cleanup.storage_locations import resolve_storage_location, strip_public_prefix

KNOWN = ["form-attachments", "public", "documents"]
DEFAULT = "form-attachments"


@pytest.mark.parametrize("row, expected", [
    ({"bucket": "documents", "path": "/sub-1/a.pdf"}, ("documents", "sub-1/a.pdf")),
    ({"storage_bucket": "public", "storage_key": "x/y.png"}, ("public", "x/y.png")),
    ({"storage_area": "documents", "storage_path": "sub-1/f_1.pdf"}, ("documents", "sub-1/f_1.pdf")),
    ({"storage_path": "documents/sub-1/a.pdf"}, ("documents", "sub-1/a.pdf")),
    ({"storage_path": "sub-1/a.pdf"}, ("form-attachments", "sub-1/a.pdf")),
    ({"url": "https://cdn.example.com/storage/v1/object/public/public/sub-1/a.png"}, ("public", "sub-1/a.png")),
    ({"url": "https://cdn.example.com/other/sub-1/a.png?x=1"}, ("form-attachments", "other/sub-1/a.png")),
    ({"bucket": "documents", "url": "https://cdn.example.com/sub-1/a.png"}, ("documents", "sub-1/a.png")),
])
def test_resolve_storage_location(row, expected):
    assert resolve_storage_location(row, KNOWN, DEFAULT) == expected


@pytest.mark.parametrize("row", [
    {},
    {"id": "att-1", "field_id": "f"},
    {"url": ""},
    {"url": "https://cdn.example.com/"},
])
def test_unresolvable_rows(row):
    assert resolve_storage_location(row, KNOWN, DEFAULT) is None


def test_strip_public_prefix_with_configured_base():
    assert strip_public_prefix("http://storage.test/base/documents/a.pdf?sig=1", "http://storage.test/base/") == "documents/a.pdf"


def test_strip_public_prefix_relative_path_is_unchanged():
    assert strip_public_prefix("/documents/a.pdf") == "documents/a.pdf"
