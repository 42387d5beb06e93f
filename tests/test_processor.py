import pytest

from bik.mapping.cache import MappingCache
from bik.mapping.errors import MappingNotFound
from bik.mapping.models import Modifier
from bik.mapping.processor import MappingProcessor
from bik.config.settings import Settings


def test_raw_value_with_empty_document(processor):
    config = processor.parse('[default]\ndcterms:license = "Public domain"\n')
    assert processor.convert(config, {}) == {"dcterms:license": ["Public domain"]}


def test_fan_out(processor):
    config = processor.parse("[mapping]\ntitle = dcterms:title|dcterms:alternative\n")
    assert processor.convert(config, {"title": "Foo"}) == {
        "dcterms:title": ["Foo"],
        "dcterms:alternative": ["Foo"],
    }


def test_uri_pattern(processor):
    config = processor.parse("[mapping]\nid = dcterms:identifier ^^uri ~ https://example.org/{{ value }}\n")
    record = processor.convert(config, {"id": "42"})
    assert record == {"dcterms:identifier": ["https://example.org/42"]}
    assert config.mapping[0].destination.datatype == ["uri"]


def test_filters_in_pattern(processor):
    config = processor.parse(
        "[mapping]\n"
        "title = dcterms:title ~ {{ value|trim|upper }}\n"
        "date = dcterms:date ~ {{ value|slice(0,4) }}-{{ value|slice(4,2) }}-{{ value|slice(6,2) }}\n"
    )
    record = processor.convert(config, {"title": "  abc ", "date": "17890804"})
    assert record == {"dcterms:title": ["ABC"], "dcterms:date": ["1789-08-04"]}


def test_unmatched_source_contributes_nothing(processor):
    config = processor.parse(
        "[mapping]\n"
        "missing = dcterms:title\n"
        "missing = dcterms:description ~ Described\n"
        "missing = dcterms:subject ~ prefix {{ value }}\n"
        'missing = dcterms:rights ~ "Always"\n'
    )
    assert processor.convert(config, {"title": "x"}) == {"dcterms:rights": ["Always"]}


def test_values_accumulate_in_entry_order(processor, book):
    config = processor.parse(
        "[mapping]\n"
        "subjects = dcterms:subject\n"
        "title = dcterms:subject\n"
        "subjects = dcterms:subject\n"
    )
    record = processor.convert(config, book)
    # Duplicates are removed inside one entry only.
    assert record["dcterms:subject"] == ["novel", "history", "Les Misérables", "novel", "history"]


def test_base_then_child_order(processor, store):
    store.register("base", "[mapping]\ntitle = dcterms:title\nsubtitle = dcterms:title\n")
    config = processor.parse("[info]\nmapper = mapping:base\n[mapping]\ntitle = dcterms:title\nalt = dcterms:title\n")

    record = processor.convert(config, {"title": "A", "subtitle": "B", "alt": "C"})
    assert record == {"dcterms:title": ["A", "B", "C"]}


def test_jmespath_querier(processor, book):
    config = processor.parse(
        "[info]\nquerier = jmespath\n[mapping]\n"
        "authors[?role=='aut'].name = dcterms:creator\n"
        "authors[].name = dcterms:contributor ~ {{ value|upper }}\n"
    )
    assert processor.convert(config, book) == {
        "dcterms:creator": ["Victor Hugo"],
        "dcterms:contributor": ["VICTOR HUGO", "ÉMILE ZOLA"],
    }


def test_jsonpath_querier(processor, book):
    config = processor.parse("[info]\nquerier = jsonpath\n[mapping]\n$.authors[*].name = dcterms:creator\n")
    assert processor.convert(config, book) == {"dcterms:creator": ["Victor Hugo", "Émile Zola"]}


def test_non_scalar_values_are_skipped(processor, book):
    config = processor.parse("[info]\nquerier = jmespath\n[mapping]\nauthors[0] = dcterms:creator\n")
    assert processor.convert(config, book) == {}


XML_MAPPING = """<mapping>
    <map>
        <to field="dcterms:license"/>
        <mod raw="Public domain"/>
    </map>
    <map>
        <from xpath="/record/title"/>
        <to field="dcterms:title"/>
    </map>
    <map>
        <from xpath="/record/author"/>
        <to field="dcterms:creator"/>
        <mod pattern="{{name}} ({{role}})"/>
    </map>
    <map>
        <from xpath="/record/author"/>
        <to field="dcterms:contributor"/>
        <mod pattern="{{ implode(' / ', '{{name}}', '{{role}}') }}"/>
    </map>
    <map>
        <from xpath="/record/note/p"/>
        <to field="dcterms:description" datatype="xml"/>
    </map>
    <map>
        <from xpath="/record/size"/>
        <to field="dcterms:extent"/>
        <mod pattern="{{ value|table(sizes) }}"/>
    </map>
    <table code="sizes">
        <list>
            <term code="S">Small</term>
        </list>
    </table>
</mapping>
"""


def test_xml_conversion(processor, record_xml):
    config = processor.parse(XML_MAPPING)
    record = processor.convert(config, record_xml)

    assert record["dcterms:license"] == ["Public domain"]
    assert record["dcterms:title"] == ["Notre-Dame de Paris"]
    assert record["dcterms:creator"] == ["Victor Hugo (aut)", "Émile Zola (edt)"]
    assert record["dcterms:contributor"] == ["Victor Hugo / aut", "Émile Zola / edt"]
    assert record["dcterms:description"] == ["<p>First <b>edition</b></p>"]


@pytest.mark.parametrize("size, expected", [("S", ["Small"]), ("Z", ["Z"])])
def test_table_lookup(processor, size, expected):
    config = processor.parse(XML_MAPPING)
    record = processor.convert(config, f"<record><size>{size}</size></record>")
    assert record["dcterms:extent"] == expected


def test_xml_mapping_on_json_document(processor):
    config = processor.parse(XML_MAPPING)
    assert processor.convert(config, {"title": "x"}) == {"dcterms:license": ["Public domain"]}


def test_params_and_variables(processor):
    config = processor.parse(
        "[params]\n"
        'base_url = "https://example.org"\n'
        "item_url = ~ {{ base_url }}/items\n"
        "[mapping]\n"
        "~ = dcterms:source ~ {{ item_url }}\n"
        "id = dcterms:identifier ~ {{ item_url }}/{{ value }}\n"
        "~ = dcterms:publisher ~ {{ publisher }}\n"
    )

    assert processor.resolve_params(config) == {
        "base_url": "https://example.org",
        "item_url": "https://example.org/items",
    }
    record = processor.convert(config, {"id": "42"}, {"publisher": "Gallimard"})
    assert record == {
        "dcterms:source": ["https://example.org/items"],
        "dcterms:identifier": ["https://example.org/items/42"],
        "dcterms:publisher": ["Gallimard"],
    }


def test_conversion_is_reentrant(processor, book):
    config = processor.parse("[mapping]\ntitle = dcterms:title\n")
    first = processor.convert(config, book)
    processor.convert(config, {"title": "Other"})
    assert processor.convert(config, book) == first


def test_convert_string(processor):
    assert processor.convert_string("  abc ", "{{ value|trim|upper }}") == "ABC"
    assert processor.convert_string("x", '"fixed"') == "fixed"
    assert processor.convert_string("x", "Yes") == "Yes"
    assert processor.convert_string("", "Yes") is None
    assert processor.convert_string(None, Modifier(raw="always")) == "always"
    assert processor.convert_string("S", "{{ value|table(sizes) }}", tables={"sizes": {"S": "Small"}}) == "Small"


def test_variable_references_in_filter_arguments(processor, book):
    assert processor.convert_string("abc", "{{ implode('-', value, {{ year }}) }}", {"year": "1789"}) == "abc-1789"
    assert processor.convert_string("abc", "{{ value|replace({'a': {{ sep }}}) }}", {"sep": "/"}) == "/bc"

    config = processor.parse(
        "[mapping]\n"
        "title = dcterms:title ~ {{ value|upper }} / {{ publisher }} / {{ implode(':', {{ publisher }}, '{{id}}') }}\n"
    )
    record = processor.convert(config, book, {"publisher": "Gallimard"})
    assert record == {"dcterms:title": ["LES MISÉRABLES / Gallimard / Gallimard:42"]}


def test_convert_to_string(processor):
    config = processor.parse(
        "[info]\nlabel = Books\n"
        "[params]\nprefix = ~ book-{{ value }}\n"
        "[mapping]\nid = dcterms:identifier ~ id:{{ value }}\n"
    )
    assert processor.convert_to_string(config, "info", "label") == "Books"
    assert processor.convert_to_string(config, "mapping", "id", {"id": "7"}) == "id:7"
    assert processor.convert_to_string(config, "mapping", "missing", {"id": "7"}) is None


def test_load_from_store(processor, store):
    reference = store.register(5, "[mapping]\ntitle = dcterms:title\n")
    config = processor.load(reference)
    assert config.info.label == "mapping:5"
    with pytest.raises(MappingNotFound):
        processor.load("mapping:404")


def test_load_file(processor, tmp_path):
    path = tmp_path / "books.ini"
    path.write_text("[mapping]\ntitle = dcterms:title\n", encoding="utf-8")
    assert processor.convert(processor.load(str(path)), {"title": "T"}) == {"dcterms:title": ["T"]}


class TestCache:

    def test_parse_once(self, vocabulary, store):
        cache = MappingCache()
        processor = MappingProcessor(Settings(), vocabulary=vocabulary, store=store, cache=cache)
        text = "[mapping]\ntitle = dcterms:title\n"

        assert processor.parse(text) is processor.parse(text)
        assert len(cache) == 1
        processor.parse(text + "id = dcterms:identifier\n")
        assert len(cache) == 2

    def test_eviction(self):
        cache = MappingCache(maxsize=1)
        cache.get_or_parse("a", lambda text: text)
        cache.get_or_parse("b", lambda text: text)
        assert MappingCache.key("a") not in cache
        assert MappingCache.key("b") in cache
