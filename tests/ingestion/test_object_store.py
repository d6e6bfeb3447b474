"""Local filesystem object store."""

import pytest

from pettycash_ingestion.adapters.base import ObjectStore
from pettycash_ingestion.adapters.object_store import LocalObjectStore
from pettycash_kernel.exceptions import ValidationError


class TestLocalObjectStore:

    def test_put_and_get(self, tmp_path):
        store = LocalObjectStore(tmp_path, "https://files.example.test/")
        url = store.put("receipts/d1/abc.jpg", b"\xff\xd8jpeg", "image/jpeg")

        assert url == "https://files.example.test/receipts/d1/abc.jpg"
        assert (tmp_path / "receipts" / "d1" / "abc.jpg").read_bytes() == b"\xff\xd8jpeg"
        assert store.get("receipts/d1/abc.jpg") == b"\xff\xd8jpeg"
        assert isinstance(store, ObjectStore)

    def test_key_cannot_escape_root(self, tmp_path):
        store = LocalObjectStore(tmp_path / "store")
        with pytest.raises(ValidationError):
            store.put("../outside.jpg", b"x", "image/jpeg")
