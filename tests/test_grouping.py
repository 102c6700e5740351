"""Tests for folder grouping helpers."""

from bucket_files.grouping import display_name, format_bytes, group_by_folder


SAMPLES = [
    [],
    [{"name": "readme.md"}],
    [{"name": "a/b.txt"}, {"name": "a/c.txt"}],
    [{"name": "src/a.js"}, {"name": "LICENSE"}, {"name": "src/b.js"}, {"name": "docs/x/y/z.md"}],
    [{"name": "b/1"}, {"name": "a/2"}, {"name": "b/3"}, {"name": "c"}],
]


class TestGroupByFolder:
    """Tests for group_by_folder."""

    def test_files_in_same_folder(self):
        """Test entries sharing a first segment land in one group in order."""
        entries = [{"name": "a/b.txt"}, {"name": "a/c.txt"}]

        result = group_by_folder(entries)

        assert list(result) == ["a"]
        assert result["a"] == entries

    def test_bare_file_becomes_empty_group(self):
        """Test a top-level file is a key with no children."""
        assert group_by_folder([{"name": "readme.md"}]) == {"readme.md": []}

    def test_only_one_level_is_grouped(self):
        """Test deep paths are grouped by their first segment only."""
        entry = {"name": "docs/guide/intro/start.md"}

        assert group_by_folder([entry]) == {"docs": [entry]}

    def test_group_order_follows_first_occurrence(self):
        """Test groups keep the order in which their key first appeared."""
        entries = [{"name": "b/1"}, {"name": "a/2"}, {"name": "b/3"}, {"name": "c"}]

        result = group_by_folder(entries)

        assert list(result) == ["b", "a", "c"]
        assert [e["name"] for e in result["b"]] == ["b/1", "b/3"]

    def test_keeps_original_entries(self):
        """Test grouped entries are the original mappings with extra fields."""
        entry = {"name": "src/a.js", "id": "123", "metadata": {"size": 10}}

        assert group_by_folder([entry])["src"][0] is entry

    def test_every_entry_accounted_for_once(self):
        """Test each entry is either a child exactly once or a childless key."""
        for entries in SAMPLES:
            result = group_by_folder(entries)
            children = [e["name"] for group in result.values() for e in group]

            for entry in entries:
                name = entry["name"]
                if "/" in name:
                    assert children.count(name) == 1
                else:
                    assert name in result
                    assert name not in children
            assert len(children) == sum(1 for e in entries if "/" in e["name"])

    def test_regrouping_is_identical(self):
        """Test grouping the same listing twice gives equal maps."""
        for entries in SAMPLES:
            first = group_by_folder(entries)
            second = group_by_folder(list(entries))

            assert first == second
            assert list(first) == list(second)


class TestHelpers:
    """Tests for display helpers."""

    def test_display_name_is_last_segment(self):
        """Test display name strips the folder part."""
        assert display_name({"name": "src/lib/a.js"}) == "a.js"
        assert display_name({"name": "LICENSE"}) == "LICENSE"

    def test_format_bytes(self):
        """Test human readable sizes."""
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(2048) == "2.00 KB"
        assert format_bytes(5 * 1024 * 1024) == "5.00 MB"
        assert format_bytes(-5) == "0 B"
