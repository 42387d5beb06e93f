import json

import pandas as pd
import pytest
from click.testing import CliRunner

from bik.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mapping_file(tmp_path):
    path = tmp_path / "books.ini"
    path.write_text(
        "[info]\nlabel = Books\n\n"
        "[mapping]\n"
        "title = dcterms:title\n"
        "subjects = dcterms:subject\n"
        "~ = dcterms:publisher ~ {{ publisher }}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def source_file(tmp_path, book):
    path = tmp_path / "books.json"
    path.write_text(json.dumps([book, {"title": "Germinal"}]), encoding="utf-8")
    return path


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_check_valid_mapping(runner, mapping_file):
    result = runner.invoke(cli, ["check", "-m", str(mapping_file)])
    assert result.exit_code == 0
    assert "Mapping is valid" in result.output


def test_check_invalid_mapping(runner, tmp_path):
    path = tmp_path / "broken.ini"
    path.write_text("[mapping]\ntitle = \n", encoding="utf-8")
    result = runner.invoke(cli, ["check", "-m", str(path)])
    assert result.exit_code != 0


def test_check_missing_mapping(runner, tmp_path):
    result = runner.invoke(cli, ["check", "-m", str(tmp_path / "missing.ini")])
    assert result.exit_code != 0


def test_convert_prints_records(runner, mapping_file, source_file):
    result = runner.invoke(
        cli,
        ["convert", "-m", str(mapping_file), "-s", str(source_file), "--var", "publisher=Gallimard"],
    )
    assert result.exit_code == 0
    assert "Germinal" in result.output
    assert "Gallimard" in result.output
    assert "2 records converted successfully" in result.output


def test_convert_to_csv(runner, tmp_path, mapping_file, source_file):
    output = tmp_path / "out.csv"
    result = runner.invoke(
        cli,
        ["convert", "-m", str(mapping_file), "-s", str(source_file), "-o", str(output), "--var", "publisher=Gallimard"],
    )
    assert result.exit_code == 0
    frame = pd.read_csv(output)
    assert list(frame.columns) == ["dcterms:title", "dcterms:subject", "dcterms:publisher"]
    assert frame["dcterms:publisher"].tolist() == ["Gallimard", "Gallimard"]


def test_convert_bad_variable(runner, mapping_file, source_file):
    result = runner.invoke(cli, ["convert", "-m", str(mapping_file), "-s", str(source_file), "--var", "publisher"])
    assert result.exit_code == 2
    assert "--var" in result.output


def test_convert_with_project(runner, tmp_path, source_file):
    (tmp_path / "mappings").mkdir()
    (tmp_path / "mappings" / "books.ini").write_text(
        "[mapping]\ntitle = dcterms:title\n~ = dcterms:publisher ~ {{ publisher }}\n",
        encoding="utf-8",
    )
    project = tmp_path / "project.yml"
    project.write_text(
        "name: Library\nmapping_dirs:\n  user: mappings\nvariables:\n  publisher: Gallimard\n",
        encoding="utf-8",
    )
    output = tmp_path / "out.json"
    result = runner.invoke(
        cli,
        ["convert", "-m", "user:books.ini", "-s", str(source_file), "-o", str(output), "-c", str(project)],
    )
    assert result.exit_code == 0
    records = json.loads(output.read_text(encoding="utf-8"))
    assert records[1] == {"dcterms:title": ["Germinal"], "dcterms:publisher": ["Gallimard"]}
