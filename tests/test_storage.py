"""Unit tests for the in-memory storage gateway."""

import os

import pytest

from blobmirror.exceptions import BlobNotFoundError, ChecksumMismatchError
from blobmirror.paths import PathCodec
from blobmirror.storage import InMemoryStorage
from blobmirror.utils import compute_content_md5


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    @pytest.fixture
    def storage(self):
        return InMemoryStorage()

    def test_put_and_get(self, storage):
        storage.put("folder1/a.txt", b"content")
        assert storage.get("folder1/a.txt") == b"content"
        assert storage.names == ["folder1/a.txt"]

    def test_put_overwrites(self, storage):
        storage.put("a.txt", b"old")
        storage.put("a.txt", b"new")
        assert storage.get("a.txt") == b"new"

    def test_put_with_valid_checksum(self, storage):
        storage.put("a.txt", b"content", checksum=compute_content_md5(b"content"))
        assert storage.get("a.txt") == b"content"

    def test_put_with_wrong_checksum(self, storage):
        with pytest.raises(ChecksumMismatchError) as exc_info:
            storage.put("a.txt", b"content", checksum=compute_content_md5(b"other"))
        assert exc_info.value.error_code == "Md5Mismatch"
        assert storage.names == []

    def test_get_missing(self, storage):
        with pytest.raises(BlobNotFoundError):
            storage.get("missing.txt")

    def test_delete(self, storage):
        storage.put("a.txt", b"content")
        storage.delete("a.txt")
        assert storage.names == []

    def test_delete_missing(self, storage):
        with pytest.raises(BlobNotFoundError) as exc_info:
            storage.delete("missing.txt")
        assert exc_info.value.key == "missing.txt"

    def test_list_by_prefix(self):
        storage = InMemoryStorage(
            {"folder1/a.txt": b"a", "folder1/b.txt": b"b", "folder10/c.txt": b"c"}
        )
        assert sorted(storage.list("folder1/")) == ["folder1/a.txt", "folder1/b.txt"]

    def test_list_empty_prefix_returns_everything(self):
        storage = InMemoryStorage({"a": b"", "b/c": b""})
        assert sorted(storage.list("")) == ["a", "b/c"]

    def test_list_no_match(self, storage):
        assert storage.list("nothing/") == []


class TestEncodingDiscipline:
    """Keys are encoded once on the way in, listings come back raw."""

    @pytest.fixture
    def codec(self):
        return PathCodec("/bucket")

    @pytest.mark.parametrize(
        "name", ["dir/my file.txt", "dir/100%.txt", "dir/a%20b.txt", "dir/café.txt"]
    )
    def test_round_trip_through_listing(self, codec, name):
        storage = InMemoryStorage()
        storage.put(codec.blob_key_for("/bucket/" + name), b"data")

        listed = storage.list(codec.blob_key_for("/bucket/dir") + "/")
        assert listed == [name]

        storage.delete(codec.encode(listed[0]))
        assert storage.names == []

    def test_double_encoding_misses_the_blob(self, codec):
        storage = InMemoryStorage()
        storage.put(codec.blob_key_for("/bucket/dir/my file.txt"), b"data")

        name = storage.list("dir/")[0]
        with pytest.raises(BlobNotFoundError):
            storage.delete(codec.encode(codec.encode(name)))
        assert storage.names == ["dir/my file.txt"]

    @pytest.mark.skipif(os.name != "posix", reason="POSIX file names")
    def test_undecodable_name_round_trips(self, codec):
        """Test a name that was not valid UTF-8 on disk."""
        storage = InMemoryStorage()
        name = os.fsdecode(b"dir/caf\xe9.txt")
        key = codec.blob_key_for("/bucket/" + name)
        storage.put(key, b"data")

        assert storage.get("dir/caf%E9.txt") == b"data"
        listed = storage.list("dir/")
        assert listed == [name]
        storage.delete(codec.encode(listed[0]))
        assert storage.names == []
