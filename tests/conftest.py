"""Shared fixtures for the mapping tests."""

import pytest

from bik.backend.static import StaticBackend
from bik.config.settings import Settings
from bik.mapping.destination import DestinationResolver
from bik.mapping.parser import MappingParser
from bik.mapping.processor import MappingProcessor
from bik.mapping.store import MappingStore
from bik.schema.models import CustomVocabSchema, SchemaConfig
from bik.schema.dublin_core import DUBLIN_CORE


@pytest.fixture
def vocabulary():
    schema = SchemaConfig(
        vocabularies=[DUBLIN_CORE],
        custom_vocabs=[CustomVocabSchema(id=3, label="Colors", terms=["red", "blue"])],
    )
    return StaticBackend(schema)


@pytest.fixture
def resolver(vocabulary):
    return DestinationResolver(vocabulary)


@pytest.fixture
def store():
    return MappingStore()


@pytest.fixture
def parser(resolver, store):
    return MappingParser(resolver, store)


@pytest.fixture
def processor(vocabulary, store):
    return MappingProcessor(Settings(), vocabulary=vocabulary, store=store)


@pytest.fixture
def book():
    return {
        "title": "Les Misérables",
        "date": "17890804",
        "id": "42",
        "authors": [
            {"name": "Victor Hugo", "role": "aut"},
            {"name": "Émile Zola", "role": "edt"},
        ],
        "subjects": ["novel", "history", "novel"],
    }


@pytest.fixture
def record_xml():
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<record>"
        "<title>Notre-Dame de Paris</title>"
        "<author><name>Victor Hugo</name><role>aut</role></author>"
        "<author><name>Émile Zola</name><role>edt</role></author>"
        "<note><p>First <b>edition</b></p></note>"
        "</record>"
    )
