import pytest
import yaml

from bik.config.manager import ConfigManager
from bik.config.settings import Settings
from bik.mapping.store import MappingStore


@pytest.fixture
def project_file(tmp_path):
    (tmp_path / "mappings").mkdir()
    (tmp_path / "mappings" / "books.ini").write_text("[mapping]\ntitle = dcterms:title\n", encoding="utf-8")
    (tmp_path / "vocabulary.yml").write_text(
        yaml.safe_dump({
            "vocabularies": [{
                "prefix": "foaf",
                "label": "Friend of a Friend",
                "properties": [{"id": 100, "local_name": "name", "label": "Name"}],
            }],
            "custom_vocabs": [{"id": 7, "label": "Colors"}],
        }),
        encoding="utf-8",
    )
    path = tmp_path / "project.yml"
    path.write_text(
        yaml.safe_dump({
            "name": "Library",
            "mapping_dirs": {"user": "mappings"},
            "vocabulary": "vocabulary.yml",
            "field_map": {"Name": "foaf:name"},
            "variables": {"publisher": "Gallimard"},
            "settings": {"import": {"batch": {"size": 50}}},
        }),
        encoding="utf-8",
    )
    return path


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("BIK_CHECK_FIELD", "true")
    monkeypatch.setenv("BIK_MAX_INCLUDE_DEPTH", "5")
    settings = Settings()
    assert settings.check_field is True
    assert settings.max_include_depth == 5


def test_settings_mapping_dirs():
    settings = Settings(user_mapping_dir="user", base_mapping_dir="base")
    assert settings.mapping_dirs() == {"user": "user", "base": "base"}


def test_load_config(project_file):
    manager = ConfigManager(str(project_file))
    assert manager.config.name == "Library"
    assert manager.config.version == "1.0.0"
    assert manager.config.variables == {"publisher": "Gallimard"}


def test_get_setting_dot_notation(project_file):
    manager = ConfigManager(str(project_file))
    assert manager.get_setting("import.batch.size") == 50
    assert manager.get_setting("import.batch.missing", 10) == 10


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigManager(str(tmp_path / "missing.yml")).load_config()


def test_vocabulary_relative_to_project(project_file):
    vocabulary = ConfigManager(str(project_file)).get_vocabulary()
    assert vocabulary.get_property_id("foaf:name") == 100
    assert vocabulary.get_property_id("dcterms:title") == 1
    assert vocabulary.get_custom_vocab_id("Colors") == 7
    assert "customvocab:7" in vocabulary.datatype_names()


def test_store_relative_to_project(project_file):
    store = ConfigManager(str(project_file), Settings()).get_store()
    assert isinstance(store, MappingStore)
    assert store.read("user:books.ini") == "[mapping]\ntitle = dcterms:title"
    assert store.read("books.ini") == "[mapping]\ntitle = dcterms:title"
