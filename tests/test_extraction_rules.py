import pytest

from conftest import list_body
from files.extraction_rules import (
    EXTRACTION_RULES,
    ExtractionRule,
    FieldAliases,
    FileCollector,
    descriptor_from_record,
    match_rule,
)


@pytest.mark.unit
class Describe_match_rule:
    def test_given_list_and_data_list_should_prefer_list(self):
        """Top-level 'list' wins over 'data.list'."""
        body = {
            "list": [{"server_filename": "top.txt"}],
            "data": {"list": [{"server_filename": "nested.txt"}]},
        }
        c = FileCollector()
        c.add_body(body)
        assert [f.name for f in c.files()] == ["top.txt"]

    def test_given_data_list_should_match_second_rule(self):
        """'data.list' is used when there is no top-level 'list'."""
        rule, records = match_rule({"data": {"list": [{"name": "a"}]}})
        assert rule.path == ("data", "list")
        assert records == [{"name": "a"}]

    def test_given_data_array_should_match_third_rule(self):
        """'data' itself may be the record array."""
        rule, _ = match_rule({"data": [{"filename": "a"}]})
        assert rule.path == ("data",)

    def test_given_non_array_list_should_fall_through(self):
        """A 'list' that is not an array does not count as a match."""
        rule, _ = match_rule({"list": {"oops": 1}, "data": [{"name": "a"}]})
        assert rule.path == ("data",)

    def test_given_unknown_shape_should_return_none(self):
        """Bodies without any known array contribute nothing."""
        assert match_rule({"errno": 0, "result": []}) is None
        assert match_rule([{"name": "a"}]) is None

    def test_rules_should_be_ordered_data(self):
        """The priority order is an explicit table."""
        assert [r.path for r in EXTRACTION_RULES] == [("list",), ("data", "list"), ("data",)]


@pytest.mark.unit
class Describe_descriptor_from_record:
    def test_should_prefer_server_filename_and_fs_id(self):
        """First alias in each group wins."""
        d = descriptor_from_record({
            "server_filename": "movie.mp4", "name": "other", "fs_id": 42, "id": 7,
            "size": 1234, "dlink": "https://d/1", "downloadUrl": "https://d/2",
        })
        assert (d.id, d.name, d.size, d.direct_url) == (42, "movie.mp4", 1234, "https://d/1")

    def test_given_no_id_should_use_name(self):
        """Records without an id are identified by their name."""
        d = descriptor_from_record({"filename": "a.txt"})
        assert d.id == "a.txt"

    def test_given_zero_size_should_keep_zero(self):
        """A reported size of 0 is a size, not a missing value."""
        d = descriptor_from_record({"name": "empty.txt", "size": 0, "filesize": 99})
        assert d.size == 0

    def test_given_filesize_alias_should_read_it(self):
        d = descriptor_from_record({"name": "a", "filesize": 5})
        assert d.size == 5

    def test_given_no_size_or_url_should_leave_none(self):
        """Optional fields stay None."""
        d = descriptor_from_record({"name": "a"})
        assert d.size is None
        assert d.direct_url is None
        assert d.to_dict() == {"id": "a", "name": "a", "size": None, "directUrl": None}

    def test_given_no_name_should_drop_record(self):
        """A record without a name is discarded."""
        assert descriptor_from_record({"fs_id": 1, "size": 3}) is None
        assert descriptor_from_record({"name": ""}) is None

    def test_given_non_object_should_drop_record(self):
        assert descriptor_from_record("file.txt") is None

    def test_given_numeric_name_should_drop_record(self):
        """A name that is not text is no name at all."""
        assert descriptor_from_record({"fs_id": 1, "server_filename": 12345}) is None

    def test_given_numeric_name_should_fall_through_to_next_alias(self):
        d = descriptor_from_record({"fs_id": 1, "server_filename": 12345, "name": "real.txt"})
        assert d.name == "real.txt"

    def test_given_non_string_direct_url_should_leave_none(self):
        d = descriptor_from_record({"name": "ok.txt", "dlink": 42})
        assert d.direct_url is None

    def test_given_non_string_direct_url_should_try_next_alias(self):
        d = descriptor_from_record({"name": "ok.txt", "dlink": {"u": 1}, "downloadUrl": "https://d/2"})
        assert d.direct_url == "https://d/2"

    def test_custom_aliases_should_apply(self):
        """New response shapes can be supported with new alias data."""
        rule = ExtractionRule(path=("items",), aliases=FieldAliases(name=("title",)))
        c = FileCollector(rules=[rule])
        c.add_body({"items": [{"title": "x.pdf"}]})
        assert c.files()[0].name == "x.pdf"


@pytest.mark.unit
class Describe_FileCollector:
    def test_same_body_twice_should_not_duplicate(self):
        """Feeding the same body twice yields the same count as once."""
        c = FileCollector()
        body = list_body(5)
        assert c.add_body(body) == 5
        assert c.add_body(body) == 0
        assert len(c) == 5

    def test_same_name_with_different_ids_should_both_count(self):
        """Dedup is by (id, name), not by name alone."""
        c = FileCollector()
        c.add_body({"list": [{"fs_id": 1, "name": "a"}, {"fs_id": 2, "name": "a"}]})
        assert len(c) == 2

    def test_should_keep_first_seen_order_across_bodies(self):
        c = FileCollector()
        c.add_body(list_body(2, start=10))
        c.add_body(list_body(3, start=0))
        assert [f.id for f in c.files()] == [10, 11, 0, 1, 2]

    def test_limit_should_truncate_in_order(self):
        """500 unique records capped at 200 keep the first 200."""
        c = FileCollector()
        c.add_body(list_body(500))
        files = c.files(limit=200)
        assert len(files) == 200
        assert files[0].id == 0
        assert files[-1].id == 199

    def test_mistyped_records_should_not_abort_the_body(self):
        """A bad record is skipped; its neighbours are still collected."""
        c = FileCollector()
        added = c.add_body({"list": [
            {"fs_id": 1, "server_filename": 12345},
            {"fs_id": 2, "server_filename": "ok.txt", "dlink": 42},
        ]})
        assert added == 1
        assert [(f.id, f.name, f.direct_url) for f in c.files()] == [(2, "ok.txt", None)]

    def test_given_unmatched_body_should_add_nothing(self):
        c = FileCollector()
        assert c.add_body({"hello": "world"}) == 0
        assert c.files() == []
