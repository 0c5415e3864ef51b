"""Tests for exclude/include pattern matching."""

import pytest

from movepress.sync.patterns import (
    Pattern,
    PatternKind,
    PatternSet,
    matches,
    rsync_filter_rules,
)


class TestPatternParse:
    """Tests for Pattern.parse."""

    def test_exact_pattern(self):
        pattern = Pattern.parse("wp-config.php")
        assert pattern.kind == PatternKind.EXACT
        assert pattern.anchored is False

    def test_directory_prefix(self):
        pattern = Pattern.parse("wp-content/cache/")
        assert pattern.kind == PatternKind.PREFIX
        assert pattern.body == "wp-content/cache"
        assert pattern.anchored is True

    def test_rsync_style_directory(self):
        pattern = Pattern.parse("wp-content/uploads/***")
        assert pattern.kind == PatternKind.PREFIX
        assert pattern.body == "wp-content/uploads"
        assert pattern.directory is True

    def test_glob_with_trailing_slash_is_directory_only(self):
        pattern = Pattern.parse("cache*/")
        assert pattern.kind == PatternKind.GLOB
        assert pattern.directory is True
        assert pattern.to_rsync() == "cache*/"
        assert Pattern.parse("*.log").directory is False

    def test_glob_pattern(self):
        pattern = Pattern.parse("*.log")
        assert pattern.kind == PatternKind.GLOB
        assert pattern.anchored is False

    def test_leading_slash_anchors(self):
        pattern = Pattern.parse("/index.php")
        assert pattern.kind == PatternKind.EXACT
        assert pattern.anchored is True
        assert pattern.body == "index.php"

    def test_empty_pattern_is_rejected(self):
        with pytest.raises(ValueError):
            Pattern.parse("")
        with pytest.raises(ValueError):
            Pattern.parse("/")


class TestMatches:
    """Tests for matching relative paths."""

    def test_exact_match(self):
        assert matches("wp-config.php", "wp-config.php") is True
        assert matches("wp-config-sample.php", "wp-config.php") is False

    def test_anchored_exact_match(self):
        assert matches("wp-content/debug.log", "wp-content/debug.log") is True
        assert matches("other/wp-content/debug.log", "wp-content/debug.log") is False

    def test_unanchored_name_matches_at_any_depth(self):
        assert matches("sub/dir/wp-config.php", "wp-config.php") is True
        assert matches("sub/index.php", "/index.php") is False

    def test_prefix_matches_directory_and_descendants(self):
        assert matches("wp-content/cache", "wp-content/cache/") is True
        assert matches("wp-content/cache/page.html", "wp-content/cache/") is True
        assert matches("wp-content/cache2/page.html", "wp-content/cache/") is False

    def test_unanchored_prefix_matches_any_component(self):
        assert matches("node_modules/pkg/index.js", "node_modules/") is True
        assert matches("theme/node_modules/pkg/index.js", "node_modules/") is True
        assert matches("theme/node_modules_old/x.js", "node_modules/") is False

    def test_glob_matches_basename_when_unanchored(self):
        assert matches("debug.log", "*.log") is True
        assert matches("folder/test.log", "*.log") is True
        assert matches("logs/test.txt", "*.log") is False

    def test_anchored_glob_respects_segments(self):
        assert matches("wp-content/themes/style.css", "wp-content/*/style.css") is True
        assert matches("wp-content/themes/a/style.css", "wp-content/*/style.css") is False
        assert matches("wp-content/themes/a/style.css", "wp-content/**/style.css") is True

    def test_directory_glob_skips_files(self):
        """Test that a glob with a trailing slash only matches directories."""
        assert matches("cache1", "cache*/", is_dir=True) is True
        assert matches("cache1", "cache*/", is_dir=False) is False
        assert matches("wp-content/cache-old", "cache*/", is_dir=False) is False

    def test_directory_prefix_skips_same_named_file(self):
        assert matches("wp-content/cache", "wp-content/cache/", is_dir=False) is False
        assert matches("wp-content/cache/a.html", "wp-content/cache/", is_dir=False) is True
        assert matches("logs/node_modules", "node_modules/", is_dir=False) is False

    def test_unknown_type_matches_directory_patterns(self):
        assert matches("cache1", "cache*/") is True

    def test_matching_is_pure(self):
        pattern = Pattern.parse("*.log")
        assert pattern.matches("a.log") == pattern.matches("a.log")


class TestPatternSet:
    """Tests for PatternSet."""

    def test_excluded_when_ancestor_matches(self):
        patterns = PatternSet(["node_modules"])
        assert patterns.is_excluded("node_modules/pkg/index.js") is True
        assert patterns.is_excluded("src/index.js") is False

    def test_order_does_not_matter(self):
        paths = ["a.log", "cache/x", "src/main.php", "wp-content/cache/y"]
        forward = PatternSet(["*.log", "wp-content/cache/", "cache/"])
        backward = PatternSet(["cache/", "wp-content/cache/", "*.log"])
        assert [forward.is_excluded(p) for p in paths] == [
            backward.is_excluded(p) for p in paths
        ]

    def test_duplicates_and_blanks_are_dropped(self):
        patterns = PatternSet(["*.log", "*.log", "", "  "])
        assert len(patterns) == 1

    def test_empty_set(self):
        patterns = PatternSet()
        assert not patterns
        assert patterns.is_excluded("anything") is False

    def test_included_descendants(self):
        patterns = PatternSet(["wp-content/uploads"])
        assert patterns.is_included("wp-content/uploads/2024/a.jpg") is True
        assert patterns.is_included("wp-content/plugins/a.php") is False

    def test_directory_glob_excludes_contents_not_files(self):
        patterns = PatternSet(["cache*/"])
        assert patterns.is_excluded("cache1/page.html", is_dir=False) is True
        assert patterns.is_excluded("cache1", is_dir=False) is False
        assert patterns.is_excluded("src/cache.php", is_dir=False) is False

    def test_ancestor_of_include(self):
        patterns = PatternSet(["wp-content/uploads/"])
        assert patterns.is_ancestor_of_match("wp-content") is True
        assert patterns.is_ancestor_of_match("wp-content/plugins") is False
        assert patterns.is_ancestor_of_match("wp-content/uploads") is False

    def test_unanchored_include_can_be_anywhere(self):
        patterns = PatternSet(["*.jpg"])
        assert patterns.is_ancestor_of_match("any/dir") is True

    def test_glob_include_ancestors(self):
        patterns = PatternSet(["wp-content/*/languages/"])
        assert patterns.is_ancestor_of_match("wp-content") is True
        assert patterns.is_ancestor_of_match("wp-content/plugins") is True
        assert patterns.is_ancestor_of_match("themes") is False


class TestRsyncFilterRules:
    """Tests for rsync_filter_rules."""

    def test_excludes_only(self):
        rules = rsync_filter_rules(["*.log", "wp-content/cache/", "/wp-config.php"])
        assert rules == [
            ("exclude", "*.log"),
            ("exclude", "/wp-content/cache/"),
            ("exclude", "/wp-config.php"),
        ]

    def test_includes_add_ancestors_and_catch_all(self):
        rules = rsync_filter_rules(["*.log"], ["wp-content/uploads/"])
        assert rules == [
            ("exclude", "*.log"),
            ("include", "/wp-content/"),
            ("include", "/wp-content/uploads/"),
            ("include", "/wp-content/uploads/***"),
            ("exclude", "*"),
        ]

    def test_shared_ancestors_are_not_repeated(self):
        rules = rsync_filter_rules([], ["wp-content/uploads/", "wp-content/themes/"])
        includes = [rule for kind, rule in rules if kind == "include"]
        assert includes.count("/wp-content/") == 1

    def test_directory_glob_keeps_trailing_slash(self):
        rules = rsync_filter_rules(["cache*/", "/uploads/*/tmp/"])
        assert rules == [("exclude", "cache*/"), ("exclude", "/uploads/*/tmp/")]

    def test_unanchored_include_descends_everywhere(self):
        rules = rsync_filter_rules([], ["*.jpg"])
        assert rules[0] == ("include", "*/")
        assert rules[-1] == ("exclude", "*")
