"""
Tests for frontmatter splitting and YAML scalar formatting.
"""
import yaml

from muninn.utils.md import split_frontmatter, yaml_escape, yaml_list, yaml_scalar


class TestSplitFrontmatter:
    def test_splits_and_strips_leading_blank_lines(self):
        frontmatter, body = split_frontmatter("---\nid: abc\n---\n\n\nBody text\nMore")

        assert frontmatter == "id: abc"
        assert body == ["Body text", "More"]

    def test_no_frontmatter(self):
        frontmatter, body = split_frontmatter("Just text")

        assert frontmatter == ""
        assert body == ["Just text"]

    def test_unterminated_frontmatter(self):
        frontmatter, _ = split_frontmatter("---\nid: abc\nno end")
        assert frontmatter == ""


class TestYamlFormatting:
    def test_scalars(self):
        assert yaml_scalar(None) == "null"
        assert yaml_scalar(True) == "true"
        assert yaml_scalar(3) == "3"
        assert yaml_scalar(83.2) == "83.2"
        assert yaml_scalar("Test") == '"Test"'

    def test_escape(self):
        assert yaml_escape('He said "hi"') == 'He said \\"hi\\"'
        assert yaml_escape("a\nb") == "a\\nb"

    def test_quoted_values_load_back_unchanged(self):
        tricky = 'Colon: "quotes" \\ and\nnewline'
        loaded = yaml.safe_load(f"value: {yaml_scalar(tricky)}")

        assert loaded["value"] == tricky

    def test_ids_stay_strings(self):
        loaded = yaml.safe_load(f"id: {yaml_scalar('1700000000000')}")
        assert loaded["id"] == "1700000000000"

    def test_lists(self):
        assert yaml_list([]) == "[]"
        assert yaml.safe_load(yaml_list(["work", "travel plans"])) == ["work", "travel plans"]
