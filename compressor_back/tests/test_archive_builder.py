"""Unit tests for archive assembly and entry naming."""

import io
import zipfile

import pytest

from app.exceptions import SerializationError
from app.services.archive_builder import ArchiveBuilder, entry_name_for


class TestEntryName:
    """Entry names derived from original filenames."""

    @pytest.mark.parametrize(
        "original, expected",
        [
            ("photo.png", "photo.webp"),
            ("photo.JPG", "photo.webp"),
            ("archive.tar.gz", "archive.tar.webp"),
            ("scan", "scan.webp"),
            ("dir/sub/cat.png", "cat.webp"),
            ("C:\\Users\\me\\dog.jpeg", "dog.webp"),
            ("../../etc/passwd.png", "passwd.webp"),
            ("", "image.webp"),
            ("..", "image.webp"),
            ("photo.", "photo.webp"),
            ("...", "image.webp"),
            ("dir/scan..", "scan.webp"),
        ],
    )
    def test_entry_name_for(self, original, expected):
        assert entry_name_for(original, "webp") == expected

    def test_extension_with_leading_dot(self):
        assert entry_name_for("a.png", ".webp") == "a.webp"


class TestCollisions:
    """Same-named entries never overwrite each other."""

    def test_first_entry_keeps_plain_name(self):
        builder = ArchiveBuilder()
        assert builder.add("photo.webp", b"1") == "photo.webp"

    def test_duplicates_get_index_suffix(self):
        builder = ArchiveBuilder()
        builder.add("photo.webp", b"1")
        builder.add("photo.webp", b"2")
        builder.add("photo.webp", b"3")

        assert builder.names == ["photo.webp", "photo_1.webp", "photo_2.webp"]

    def test_collision_check_ignores_case(self):
        builder = ArchiveBuilder()
        builder.add("Photo.webp", b"1")
        assert builder.add("photo.webp", b"2") == "photo_1.webp"

    def test_suffix_skips_names_already_taken(self):
        builder = ArchiveBuilder()
        builder.add("a.webp", b"1")
        builder.add("a_1.webp", b"2")
        assert builder.add("a.webp", b"3") == "a_2.webp"

    def test_name_without_extension(self):
        builder = ArchiveBuilder()
        builder.add("readme", b"1")
        assert builder.add("readme", b"2") == "readme_1"


class TestSerialize:
    """ZIP output."""

    def test_entries_and_order_preserved(self):
        builder = ArchiveBuilder()
        builder.add("b.webp", b"bbb")
        builder.add("a.webp", b"aaa")
        builder.add("b.webp", b"second b")

        with zipfile.ZipFile(io.BytesIO(builder.serialize())) as zipf:
            assert zipf.namelist() == ["b.webp", "a.webp", "b_1.webp"]
            assert zipf.read("a.webp") == b"aaa"
            assert zipf.read("b_1.webp") == b"second b"

    def test_same_entries_give_identical_bytes(self):
        def build():
            builder = ArchiveBuilder()
            builder.add("x.webp", b"x" * 1000)
            builder.add("y.webp", b"y" * 1000)
            return builder.serialize()

        assert build() == build()

    def test_serialize_twice_fails(self):
        builder = ArchiveBuilder()
        builder.add("x.webp", b"x")
        builder.serialize()

        with pytest.raises(SerializationError):
            builder.serialize()

    def test_add_after_serialize_fails(self):
        builder = ArchiveBuilder()
        builder.serialize()

        with pytest.raises(SerializationError):
            builder.add("x.webp", b"x")

    def test_len_counts_entries(self):
        builder = ArchiveBuilder()
        assert len(builder) == 0
        builder.add("x.webp", b"x")
        builder.add("x.webp", b"x")
        assert len(builder) == 2
