"""
Test path filtering: default directory excludes, user patterns, extensions.
"""

from pathlib import Path

import pytest

from watchrun.ignore_defaults import DEFAULT_EXTENSIONS
from watchrun.ignore_patterns import (
    IgnoreFilter,
    is_editor_temp_file,
    normalize_extension,
    parse_extensions,
)


ROOT = Path("/work/project")


class TestParseExtensions:
    """Test the --extension list parsing."""

    def test_single_list(self):
        assert parse_extensions("xyz,js") == ("xyz", "js")

    def test_strips_dots_spaces_and_case(self):
        assert parse_extensions(" .PY , .Js ") == ("py", "js")

    def test_repeated_flags_are_merged_without_duplicates(self):
        assert parse_extensions(["py", "js,py", "toml"]) == ("py", "js", "toml")

    def test_blank_falls_back_to_default(self):
        assert parse_extensions("") == DEFAULT_EXTENSIONS
        assert parse_extensions(" , ") == DEFAULT_EXTENSIONS
        assert parse_extensions(None) == DEFAULT_EXTENSIONS

    def test_normalize_extension(self):
        assert normalize_extension(".D.TS") == "d.ts"
        assert normalize_extension("  ") == ""


class TestDefaultIgnores:
    """Default excluded directories win over any extension configuration."""

    @pytest.mark.parametrize("dirname", ["node_modules", ".git"])
    def test_ignores_dependency_and_vcs_dirs(self, dirname):
        f = IgnoreFilter(extensions=["xyz", "js"], roots=[ROOT])
        assert f.accepts(ROOT / dirname / "file.xyz") is False
        assert f.accepts(ROOT / "src" / dirname / "deep" / "file.js") is False

    def test_ignores_pycache_and_venv(self):
        f = IgnoreFilter(roots=[ROOT])
        assert f.accepts(ROOT / "__pycache__" / "mod.py") is False
        assert f.accepts(ROOT / ".venv" / "lib" / "site.py") is False

    def test_explicit_file_still_subject_to_dir_excludes(self):
        f = IgnoreFilter()
        assert f.accepts(ROOT / ".git" / "HEAD", explicit=True) is False

    def test_dirs_above_the_root_do_not_count(self):
        """A project checked out under .tox/ or node_modules/ still reruns."""
        root = Path("/home/dev/.tox/py312/node_modules/project")
        f = IgnoreFilter(roots=[root])
        assert f.accepts(root / "src" / "app.py") is True
        assert f.accepts(root / "node_modules" / "dep.py") is False

    def test_path_outside_every_root_checks_all_components(self):
        f = IgnoreFilter(roots=[ROOT])
        assert f.accepts(Path("/elsewhere/node_modules/dep.py")) is False

    def test_name_only_matches_whole_components(self):
        """A file called node_modules.py is not inside node_modules/."""
        f = IgnoreFilter(roots=[ROOT])
        assert f.accepts(ROOT / "node_modules.py") is True
        assert f.accepts(ROOT / "my.git" / "a.py") is True


class TestExtensions:
    def test_default_accepts_python_only(self):
        f = IgnoreFilter(roots=[ROOT])
        assert f.accepts(ROOT / "src" / "main.py") is True
        assert f.accepts(ROOT / "src" / "main.js") is False
        assert f.accepts(ROOT / "README.md") is False

    def test_configured_extensions(self):
        f = IgnoreFilter(extensions=["xyz", "js"], roots=[ROOT])
        assert f.accepts(ROOT / "file.xyz") is True
        assert f.accepts(ROOT / "test.js") is True
        assert f.accepts(ROOT / "test.py") is False

    def test_extension_match_is_case_insensitive(self):
        f = IgnoreFilter(extensions=["py"])
        assert f.accepts(ROOT / "Main.PY") is True

    def test_compound_extension(self):
        f = IgnoreFilter(extensions=["d.ts"])
        assert f.accepts(ROOT / "types.d.ts") is True
        assert f.accepts(ROOT / "main.ts") is False

    def test_suffix_must_follow_a_dot(self):
        f = IgnoreFilter(extensions=["py"])
        assert f.accepts(ROOT / "happy") is False

    def test_explicit_file_skips_extension_check(self):
        f = IgnoreFilter(extensions=["py"])
        assert f.accepts(ROOT / "Makefile", explicit=True) is True


class TestEditorTempFiles:
    @pytest.mark.parametrize(
        "name",
        ["main.py~", ".main.py.swp", "main.py.tmp", "main.py.tmp.1234.5678", ".#main.py"],
    )
    def test_temp_files_rejected(self, name):
        assert is_editor_temp_file(name) is True
        assert IgnoreFilter().accepts(ROOT / name) is False

    @pytest.mark.parametrize("name", ["fixtures.tmp.py", "tmp.py", "test_tmp.py"])
    def test_tmp_in_a_real_source_name_is_not_temp(self, name):
        assert is_editor_temp_file(name) is False
        assert IgnoreFilter().accepts(ROOT / name) is True

    def test_regular_file_is_not_temp(self):
        assert is_editor_temp_file("main.py") is False


class TestUserPatterns:
    """--ignore patterns use gitignore syntax relative to the watch root."""

    def test_directory_pattern(self):
        f = IgnoreFilter(ignore_patterns=["docs/"], roots=[ROOT])
        assert f.accepts(ROOT / "docs" / "conf.py") is False
        assert f.accepts(ROOT / "src" / "conf.py") is True

    def test_glob_pattern(self):
        f = IgnoreFilter(ignore_patterns=["*_generated.py"], roots=[ROOT])
        assert f.accepts(ROOT / "pkg" / "models_generated.py") is False
        assert f.accepts(ROOT / "pkg" / "models.py") is True

    def test_anchored_pattern(self):
        f = IgnoreFilter(ignore_patterns=["/build.py"], roots=[ROOT])
        assert f.accepts(ROOT / "build.py") is False
        assert f.accepts(ROOT / "tools" / "build.py") is True

    def test_pattern_without_roots_matches_file_name(self):
        f = IgnoreFilter(ignore_patterns=["conftest.py"])
        assert f.accepts(Path("/elsewhere/conftest.py")) is False

    def test_blank_patterns_are_dropped(self):
        f = IgnoreFilter(ignore_patterns=["", "   "], roots=[ROOT])
        assert f.ignore_patterns == ()
        assert f.accepts(ROOT / "a.py") is True


class TestTotality:
    """The filter never raises; unusable input is rejected."""

    @pytest.mark.parametrize("path", ["", "/", None, 42])
    def test_unusable_paths_rejected(self, path):
        assert IgnoreFilter().accepts(path) is False

    def test_string_paths_accepted(self):
        assert IgnoreFilter().accepts("/work/project/a.py") is True
