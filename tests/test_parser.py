import pytest

from bik.mapping.errors import InclusionDepthExceeded
from bik.mapping.models import Modifier, Querier
from bik.mapping.parser import MappingParser, compose, param_value, split_line
from bik.mapping.destination import DestinationResolver

LINE_MAPPING = """
; Books to Dublin Core.
[info]
label = Books
querier = jmespath

[params]
base_url = "https://example.org"
enabled = true
nothing = null
item_url = ~ {{ base_url }}/items

[default]
dcterms:license = "Public domain"
dcterms:type ~ Text

[mapping]
title = dcterms:title @fra ^^literal
authors[].name = dcterms:creator
title = dcterms:title|dcterms:alternative
id = dcterms:identifier ^^uri ~ https://example.org/{{ value }}
~ = dcterms:source ~ {{ item_url }}
dcterms:rights ~ "Free"
"""


def test_split_line():
    assert split_line("a = b") == ("a", "b", False)
    assert split_line("dcterms:title @fra") == ("~", "dcterms:title @fra", True)
    assert split_line("~ = dcterms:title ~ {{ value }}") == ("~", "dcterms:title ~ {{ value }}", False)
    assert split_line("a[?x=='1'] = b ~ {{ value|replace({'=': '-'}) }}") == (
        "a[?x=='1']",
        "b ~ {{ value|replace({'=': '-'}) }}",
        False,
    )
    assert split_line('dcterms:rights = "a = b"') == ("dcterms:rights", '"a = b"', False)


def test_param_value():
    assert param_value('"quoted"') == "quoted"
    assert param_value("TRUE") is True
    assert param_value("null") is None
    assert param_value("plain") == "plain"
    assert isinstance(param_value("~ {{ value }}"), Modifier)


def test_sections(parser):
    config = parser.parse(LINE_MAPPING, "books")

    assert not config.has_error
    assert config.info.label == "Books"
    assert config.querier == Querier.JMESPATH
    assert config.params["base_url"] == "https://example.org"
    assert config.params["enabled"] is True
    assert config.params["nothing"] is None
    assert isinstance(config.params["item_url"], Modifier)


def test_default_entries_have_no_source(parser):
    config = parser.parse(LINE_MAPPING)

    assert [entry.destination.field for entry in config.default] == ["dcterms:license", "dcterms:type"]
    assert all(entry.source is None for entry in config.default)
    assert config.default[0].modifier.raw == "Public domain"
    assert config.default[1].modifier.val == "Text"


def test_mapping_entries(parser):
    config = parser.parse(LINE_MAPPING)
    entries = config.mapping

    assert entries[0].source.querier == Querier.JMESPATH
    assert entries[0].source.path == "title"
    assert entries[0].destination.language == "fra"
    assert entries[1].source.path == "authors[].name"
    # Fan-out gives one entry per field.
    assert [entry.destination.field for entry in entries[2:4]] == ["dcterms:title", "dcterms:alternative"]
    assert entries[4].modifier.prepend == "https://example.org/"
    assert entries[5].source is None
    assert entries[6].source is None
    assert entries[6].modifier.raw == "Free"
    assert config.get_entry("id").destination.field == "dcterms:identifier"


def test_parse_is_deterministic(parser):
    assert parser.parse(LINE_MAPPING) == parser.parse(LINE_MAPPING)


def test_malformed_lines_are_kept_with_an_error(parser):
    config = parser.parse("[mapping]\ntitle = @fra\n= dcterms:title\ntitle = dcterms:title\n")

    assert config.has_error
    assert len(config.errors) == 2
    assert [entry.is_valid for entry in config.mapping] == [False, False, True]
    assert config.mapping[0].error


def test_unknown_section_is_skipped(parser):
    config = parser.parse("[unknown]\ntitle = dcterms:title\n[mapping]\nid = dcterms:identifier\n")

    assert config.has_error
    assert [entry.source.path for entry in config.mapping] == ["id"]


def test_unknown_querier(parser):
    config = parser.parse("[info]\nquerier = sql\n[mapping]\nid = dcterms:identifier\n")
    assert config.has_error
    assert config.mapping[0].source.querier == Querier.JSDOT


def test_unknown_field_is_dropped_without_failing(vocabulary, store):
    parser = MappingParser(DestinationResolver(vocabulary, check_field=True), store)
    config = parser.parse("[mapping]\na = foo:bar\nb = dcterms:title\n")

    assert not config.has_error
    assert len(config.errors) == 1
    assert [entry.is_valid for entry in config.mapping] == [False, True]


def test_unknown_field_of_fan_out_keeps_the_other_fields(vocabulary, store):
    parser = MappingParser(DestinationResolver(vocabulary, check_field=True), store)
    config = parser.parse("[mapping]\nt = dcterms:title|foo:unknown|dcterms:alternative\n")

    assert not config.has_error
    assert config.errors == ['The field "foo:unknown" matches no known property.']
    valid = [entry for entry in config.mapping if entry.is_valid]
    assert [entry.destination.field for entry in valid] == ["dcterms:title", "dcterms:alternative"]
    assert all(entry.source.path == "t" for entry in valid)


def test_autofillers(parser):
    config = parser.parse(
        "[mapping]\ntitle = dcterms:title\n"
        "[idref:person #main] = IdRef Person\n"
        "name = foaf:name\n"
        "birth = dcterms:date\n"
        "[geonames] = Geonames\n"
        "toponymName = dcterms:spatial\n"
    )

    assert not config.has_error
    assert len(config.mapping) == 1
    block = config.autofillers["idref:person #main"]
    assert (block.service, block.sub, block.variant, block.label) == ("idref", "person", "main", "IdRef Person")
    assert [entry.destination.field for entry in block.mapping] == ["foaf:name", "dcterms:date"]
    assert config.autofillers["geonames"].mapping[0].source.path == "toponymName"


XML_MAPPING = """<?xml version="1.0" encoding="UTF-8"?>
<mapping>
    <info>
        <label>Records</label>
        <querier>xpath</querier>
    </info>
    <params>
        <source>catalog</source>
    </params>
    <map>
        <to field="dcterms:license"/>
        <mod raw="Public domain"/>
    </map>
    <map>
        <from xpath="/record/title"/>
        <to field="dcterms:title" datatype="literal" language="fra" visibility="private"/>
    </map>
    <map>
        <from xpath="/record/author"/>
        <to field="dcterms:creator" datatype='customvocab:"Colors" literal'/>
        <mod prepend="By " pattern="{{name}} ({{role}})"/>
    </map>
    <map>
        <from xpath="/record/size"/>
        <to field="dcterms:extent"/>
        <mod pattern="{{ value|table(sizes) }}"/>
    </map>
    <map>
        <from xpath="/record/note" jsdot="note"/>
        <to field="dcterms:description"/>
    </map>
    <map>
        <from xpath="/record/id"/>
    </map>
    <table code="sizes">
        <list>
            <term code="S">Small</term>
            <term code="M">Medium</term>
        </list>
    </table>
</mapping>
"""


def test_xml_mapping(parser):
    config = parser.parse(XML_MAPPING)

    assert config.info.label == "Records"
    assert config.querier == Querier.XPATH
    assert config.params == {"source": "catalog"}
    assert config.tables == {"sizes": {"S": "Small", "M": "Medium"}}

    assert len(config.default) == 1
    assert config.default[0].modifier.raw == "Public domain"

    title = config.mapping[0]
    assert title.source.querier == Querier.XPATH
    assert title.destination.datatype == ["literal"]
    assert title.destination.visibility == "private"
    assert title.destination.dest == "dcterms:title ^^literal @fra §private"

    creator = config.mapping[1]
    assert creator.destination.datatype == ["customvocab:3", "literal"]
    assert creator.modifier.prepend == "By "
    assert creator.modifier.append == ")"


def test_xml_errors(parser):
    config = parser.parse(XML_MAPPING)

    assert config.has_error
    assert [entry.is_valid for entry in config.mapping] == [True, True, True, False, False]


def test_invalid_xml(parser):
    config = parser.parse("<mapping><map></mapping>")
    assert config.has_error
    assert config.mapping == []


class TestInclusion:

    def test_include(self, parser, store):
        store.register(1, '<?xml version="1.0"?><mapping><map><from xpath="/r/t"/><to field="dcterms:title"/></map></mapping>')
        config = parser.parse('<mapping><include mapping="mapping:1"/><map><from xpath="/r/d"/><to field="dcterms:date"/></map></mapping>')

        assert [entry.source.path for entry in config.mapping] == ["/r/t", "/r/d"]

    def test_missing_include_is_removed(self, parser):
        config = parser.parse('<mapping><include mapping="mapping:404"/><map><from xpath="/r/d"/><to field="dcterms:date"/></map></mapping>')
        assert [entry.source.path for entry in config.mapping] == ["/r/d"]

    def test_recursive_include(self, parser, store):
        store.register(2, '<mapping><include mapping="mapping:2"/></mapping>')
        with pytest.raises(InclusionDepthExceeded):
            parser.parse(store.read("mapping:2"))

    def test_include_from_directory(self, resolver, tmp_path):
        from bik.mapping.store import MappingStore

        (tmp_path / "common.xml").write_text(
            '<mapping><map><from xpath="/r/t"/><to field="dcterms:title"/></map></mapping>',
            encoding="utf-8",
        )
        parser = MappingParser(resolver, MappingStore({"user": tmp_path}))
        config = parser.parse('<mapping><include mapping="common.xml"/></mapping>', prefix="user")
        assert config.mapping[0].destination.field == "dcterms:title"


class TestComposition:

    def test_base_mapper(self, parser, store):
        store.register("base", "[info]\nlabel = Base\n[mapping]\ntitle = dcterms:title\n")
        config = parser.parse(
            "[info]\nmapper = mapping:base\n[mapping]\ntitle = dcterms:title\nalt = dcterms:title\n",
            "child",
        )

        assert config.info.label == "child"
        assert [entry.source.path for entry in config.mapping] == ["title", "alt"]

    def test_missing_base_mapper(self, parser):
        config = parser.parse("[info]\nmapper = nowhere\n[mapping]\ntitle = dcterms:title\n")
        assert config.has_error
        assert len(config.mapping) == 1

    def test_recursive_base_mapper(self, parser, store):
        store.register("loop", "[info]\nmapper = mapping:loop\n")
        with pytest.raises(InclusionDepthExceeded):
            parser.parse(store.read("mapping:loop"))

    def test_compose_merges_sections(self, parser):
        base = parser.parse("[params]\na = 1\nb = 2\n[default]\ndcterms:license = \"CC0\"\n")
        child = parser.parse("[params]\nb = 3\n[default]\ndcterms:license = \"CC0\"\ndcterms:rights = \"Free\"\n")
        config = compose(base, child)

        assert config.params == {"a": "1", "b": "3"}
        assert [entry.modifier.raw for entry in config.default] == ["CC0", "Free"]
