"""Tests for YamlSchemeProcessor."""

import sys
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from scheme_registry import SchemeFileError
from scheme_registry import SchemeValidationError
from scheme_registry import YamlScheme
from scheme_registry import YamlSchemeProcessor


class TestYamlSchemeProcessor:
    """Test YamlSchemeProcessor class."""

    @pytest.fixture
    def root(self):
        """Create temporary scheme directory."""
        with TemporaryDirectory() as tmpdir:
            yield Path(tmpdir) / "colors"

    @pytest.fixture
    def processor(self):
        return YamlSchemeProcessor()

    # ===== Load Tests =====

    def test_load_missing_directory(self, processor, root):
        """Test loading from a directory that doesn't exist yet."""
        assert processor.load(root) == []

    def test_save_and_load(self, processor, root):
        """Test a saved scheme loads back with the same name and settings."""
        scheme = YamlScheme(name="_@user_Darcula", settings={"colors": {"bg": "#2b2b2b"}, "font": 13})
        processor.save(scheme, root)

        loaded = processor.load(root)

        assert len(loaded) == 1
        assert loaded[0].name == "_@user_Darcula"
        assert loaded[0].settings == {"colors": {"bg": "#2b2b2b"}, "font": 13}
        assert loaded[0].read_only is False

    def test_load_sorted_by_file_name(self, processor, root):
        for name in ("Monokai", "Darcula", "Default"):
            processor.save(YamlScheme(name=name), root)

        assert [s.name for s in processor.load(root)] == ["Darcula", "Default", "Monokai"]

    def test_name_falls_back_to_file_stem(self, processor, root):
        root.mkdir(parents=True)
        (root / "Solarized.yaml").write_text("settings:\n  bg: '#fdf6e3'\n")

        loaded = processor.load(root)

        assert loaded[0].name == "Solarized"
        assert loaded[0].settings == {"bg": "#fdf6e3"}

    def test_empty_file_loads_as_empty_scheme(self, processor, root):
        root.mkdir(parents=True)
        (root / "Blank.yaml").write_text("")

        loaded = processor.load(root)

        assert loaded[0].name == "Blank"
        assert loaded[0].settings == {}

    def test_broken_files_skipped(self, processor, root, caplog):
        """Test one broken file never hides the rest."""
        processor.save(YamlScheme(name="Good"), root)
        (root / "Broken.yaml").write_text("name: [unclosed\n")
        (root / "List.yaml").write_text("- a\n- b\n")
        (root / "BadSettings.yaml").write_text("name: Bad\nsettings: 3\n")
        (root / "Latin1.yaml").write_bytes(b"name: \xff\xfe bad\n")

        loaded = processor.load(root)

        assert [s.name for s in loaded] == ["Good"]
        assert "Broken.yaml" in caplog.text
        assert "List.yaml" in caplog.text
        assert "BadSettings.yaml" in caplog.text
        assert "Latin1.yaml" in caplog.text

    def test_other_extensions_ignored(self, processor, root):
        root.mkdir(parents=True)
        (root / "notes.txt").write_text("name: Notes\n")
        assert processor.load(root) == []

    def test_custom_extension(self, root):
        processor = YamlSchemeProcessor(extension=".scheme")
        processor.save(YamlScheme(name="Darcula"), root)

        assert (root / "Darcula.scheme").exists()
        assert [s.name for s in processor.load(root)] == ["Darcula"]

    # ===== Save/Delete Tests =====

    def test_save_creates_directory(self, processor, root):
        assert not root.exists()
        processor.save(YamlScheme(name="Darcula"), root)
        assert (root / "Darcula.yaml").exists()

    def test_yaml_format_preserved(self, processor, root):
        """Test that key order and block style are kept."""
        processor.save(YamlScheme(name="Darcula", settings={"z": 1, "a": 2}), root)

        content = (root / "Darcula.yaml").read_text()

        assert content.index("name:") < content.index("settings:")
        assert content.index("z: 1") < content.index("a: 2")

    def test_save_failure_raises_scheme_file_error(self, processor, root):
        root.parent.mkdir(parents=True, exist_ok=True)
        root.write_text("not a directory")

        with pytest.raises(SchemeFileError) as exc_info:
            processor.save(YamlScheme(name="Darcula"), root)

        assert exc_info.value.scheme_name == "Darcula"

    def test_tuple_settings_round_trip(self, processor, root):
        """Test sequences are written as plain YAML that loads back."""
        processor.save(YamlScheme(name="T", settings={"size": (1, 2)}), root)

        content = (root / "T.yaml").read_text()
        loaded = processor.load(root)

        assert "!!python" not in content
        assert loaded[0].settings == {"size": [1, 2]}

    def test_save_rejects_non_plain_values(self, processor, root):
        """Test values safe_load couldn't read back fail the save."""
        with pytest.raises(SchemeFileError) as exc_info:
            processor.save(YamlScheme(name="Obj", settings={"value": object()}), root)

        assert exc_info.value.scheme_name == "Obj"
        assert not (root / "Obj.yaml").exists()

    def test_similar_names_get_distinct_files(self, processor, root):
        """Test names differing only in unsafe characters don't overwrite each other."""
        for name in ("a/b", "a_b", "a%2Fb", " X", "X", "X "):
            processor.save(YamlScheme(name=name, settings={"source": name}), root)

        loaded = {s.name: s.settings["source"] for s in processor.load(root)}

        assert loaded == {name: name for name in ("a/b", "a_b", "a%2Fb", " X", "X", "X ")}

    def test_delete_leaves_similar_names_alone(self, processor, root):
        processor.save(YamlScheme(name="a/b"), root)
        processor.save(YamlScheme(name="a_b"), root)

        processor.delete("a/b", root)

        assert [s.name for s in processor.load(root)] == ["a_b"]

    def test_name_falls_back_to_decoded_file_stem(self, processor, root):
        root.mkdir(parents=True)
        (root / "a%2Fb.yaml").write_text("settings: {}\n")

        assert [s.name for s in processor.load(root)] == ["a/b"]

    def test_delete(self, processor, root):
        processor.save(YamlScheme(name="Darcula"), root)
        processor.delete("Darcula", root)
        assert not (root / "Darcula.yaml").exists()

    def test_delete_missing_is_ignored(self, processor, root):
        processor.delete("Nothing", root)

    # ===== Parse Tests =====

    def test_parse_rejects_non_mapping(self):
        with pytest.raises(SchemeValidationError):
            YamlSchemeProcessor.parse(["a"], default_name="x")

    def test_parse_rejects_blank_name(self):
        with pytest.raises(SchemeValidationError):
            YamlSchemeProcessor.parse({"name": "  "}, default_name="x")

    def test_parse_rejects_non_string_name(self):
        with pytest.raises(SchemeValidationError):
            YamlSchemeProcessor.parse({"name": 42}, default_name="x")

    # ===== Bundled Tests =====

    @pytest.fixture
    def bundled_package(self, tmp_path, monkeypatch):
        """Create an importable package shipping scheme resources."""
        package = tmp_path / "fake_theme_plugin"
        (package / "schemes").mkdir(parents=True)
        (package / "__init__.py").write_text("")
        (package / "schemes" / "Darcula.yaml").write_text("name: Darcula\nsettings:\n  bg: '#2b2b2b'\n")
        (package / "schemes" / "Broken.yaml").write_text("name: [unclosed\n")
        (package / "schemes" / "Latin1.yaml").write_bytes(b"name: \xff\xfe\n")
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.delitem(sys.modules, "fake_theme_plugin", raising=False)
        return "fake_theme_plugin"

    def test_load_bundled(self, processor, bundled_package):
        scheme = processor.load_bundled("schemes/Darcula.yaml", bundled_package)

        assert scheme.name == "Darcula"
        assert scheme.settings == {"bg": "#2b2b2b"}
        assert scheme.read_only is True

    def test_load_bundled_missing_resource(self, processor, bundled_package):
        with pytest.raises(SchemeFileError):
            processor.load_bundled("schemes/Missing.yaml", bundled_package)

    def test_load_bundled_broken_resource(self, processor, bundled_package):
        with pytest.raises(SchemeFileError):
            processor.load_bundled("schemes/Broken.yaml", bundled_package)

    def test_load_bundled_invalid_encoding(self, processor, bundled_package):
        with pytest.raises(SchemeFileError):
            processor.load_bundled("schemes/Latin1.yaml", bundled_package)
