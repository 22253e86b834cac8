import copy
import unittest

from pydantic import ValidationError

from crudkit.core.config import CrudConfig
from crudkit.core.errors import ConfigurationError
from crudkit.schemas.query import QueryDescriptor, SortClause
from crudkit.services.query_builder import (
    QueryBuilder,
    build_query,
    params_to_filters,
    parse_sort_order,
    query_as_string,
)


class ParamsToFiltersTests(unittest.TestCase):
    def test_wildcard_value_becomes_like_filter(self):
        result = params_to_filters(["name"], {"name": "jo%"})
        self.assertEqual(len(result.filters), 1)
        f = result.filters[0]
        self.assertEqual((f.field, f.op, f.values, f.token), ("name", "LIKE", ["jo%"], "like"))
        self.assertEqual(result.logical_op, "AND")

    def test_star_is_normalized_to_percent(self):
        result = params_to_filters(["name"], {"name": ["jo*", "*an"]})
        self.assertEqual(result.filters[0].op, "LIKE")
        self.assertEqual(result.filters[0].values, ["jo%", "%an"])
        self.assertEqual(result.raw_params["name"], ["jo*", "*an"])
        self.assertEqual(result.filters[0].raw_values, ["jo*", "*an"])

    def test_ilike_token_when_configured(self):
        result = params_to_filters(["name"], {"name": "jo%"}, use_ilike=True)
        self.assertEqual(result.filters[0].token, "ilike")

    def test_negated_value_uses_configured_ne_sign(self):
        result = params_to_filters(["age"], {"age": "!5"}, ne_sign="<>")
        self.assertEqual(len(result.filters), 1)
        f = result.filters[0]
        self.assertEqual((f.field, f.op, f.values, f.token), ("age", "NOT_EQUALS", ["5"], "<>"))

    def test_negated_values_never_land_in_equals(self):
        result = params_to_filters(["age"], {"age": ["!5", "7"]})
        ops = {f.op for f in result.filters}
        self.assertEqual(ops, {"NOT_EQUALS"})
        self.assertEqual(result.filters[0].values, ["5"])

    def test_integer_like_field_gets_range_on_numeric_prefix(self):
        result = params_to_filters(["year"], {"year": "2020%"}, treat_like_int={"year"})
        f = result.filters[0]
        self.assertEqual((f.op, f.values, f.token), ("RANGE_GE", ["2020"], ">="))

    def test_integer_like_field_without_prefix_emits_nothing(self):
        result = params_to_filters(["year"], {"year": "%"}, treat_like_int={"year"})
        self.assertEqual(result.filters, [])
        self.assertEqual(result.raw_params, {"year": ["%"]})

    def test_plain_values_become_equals(self):
        result = params_to_filters(["name"], {"name": ["a", "b"]})
        f = result.filters[0]
        self.assertEqual((f.op, f.values, f.token), ("EQUALS", ["a", "b"], "="))

    def test_fuzzy_appends_wildcard(self):
        result = params_to_filters(["name", "city"], {"name": "jo", "city": "par%", "_fuzzy": "1"})
        by_field = {f.field: f for f in result.filters}
        self.assertEqual(by_field["name"].op, "LIKE")
        self.assertEqual(by_field["name"].values, ["jo%"])
        self.assertEqual(by_field["city"].values, ["par%"])

    def test_absent_and_blank_fields_are_dropped(self):
        result = params_to_filters(["name", "age", "city"], {"name": ["", "  "], "city": "x"})
        self.assertEqual([f.field for f in result.filters], ["city"])
        self.assertNotIn("name", result.raw_params)
        self.assertNotIn("age", result.raw_params)

    def test_only_permitted_fields_are_used(self):
        result = params_to_filters(["name"], {"name": "a", "password": "secret"})
        self.assertEqual([f.field for f in result.filters], ["name"])

    def test_input_params_are_not_mutated(self):
        params = {"name": ["jo*", "!bob"], "_fuzzy": "1"}
        before = copy.deepcopy(params)
        params_to_filters(["name"], params)
        self.assertEqual(params, before)

    def test_or_is_ignored_for_a_single_filter(self):
        result = params_to_filters(["name"], {"name": "jo", "_op": "OR"})
        self.assertEqual(result.logical_op, "AND")

    def test_or_applies_with_three_filters(self):
        params = {"name": "a", "city": "b", "age": "3", "_op": "OR"}
        result = params_to_filters(["name", "city", "age"], params)
        self.assertEqual(len(result.filters), 3)
        self.assertEqual(result.logical_op, "OR")

    def test_or_threshold_counts_filters_not_fields(self):
        # One field producing a LIKE and a not-equal filter already switches to OR.
        result = params_to_filters(["name"], {"name": ["jo%", "!joe"], "_op": "OR"})
        self.assertEqual([f.op for f in result.filters], ["LIKE", "NOT_EQUALS"])
        self.assertEqual(result.logical_op, "OR")

    def test_lowercase_or_is_not_honored(self):
        result = params_to_filters(["name", "city"], {"name": "a", "city": "b", "_op": "or"})
        self.assertEqual(result.logical_op, "AND")


class QueryBuilderFiltersTests(unittest.TestCase):
    def test_parameters_to_filters_uses_config(self):
        config = CrudConfig(model_name="Thing", ne_sign="<>", use_ilike=True)
        builder = QueryBuilder(config, treat_like_int=["year"])
        result = builder.parameters_to_filters(
            ["name", "year", "age", "city"],
            {"name": "jo*", "year": "19%", "age": "!3", "_op": "OR", "_page": "2"},
        )
        self.assertEqual(
            [(f.field, f.op, f.values, f.token) for f in result.filters],
            [
                ("name", "LIKE", ["jo%"], "ilike"),
                ("year", "RANGE_GE", ["19"], ">="),
                ("age", "NOT_EQUALS", ["3"], "<>"),
            ],
        )
        self.assertEqual(result.logical_op, "OR")
        self.assertEqual(result.raw_params, {"name": ["jo*"], "year": ["19%"], "age": ["!3"]})


class SortOrderTests(unittest.TestCase):
    def test_combined_expression(self):
        self.assertEqual(
            parse_sort_order("name asc, age DESC"),
            [SortClause(column="name", direction="ASC"), SortClause(column="age", direction="DESC")],
        )

    def test_direction_defaults_to_asc(self):
        self.assertEqual(
            parse_sort_order("name age desc"),
            [SortClause(column="name", direction="ASC"), SortClause(column="age", direction="DESC")],
        )

    def test_empty_expression(self):
        self.assertEqual(parse_sort_order(""), [])


class BuildQueryTests(unittest.TestCase):
    def test_page_and_page_size_give_offset(self):
        q = build_query(["name"], {"_page": "3", "_page_size": "10"})
        self.assertEqual((q.limit, q.offset), (10, 20))

    def test_no_page_strips_limit_and_offset(self):
        q = build_query(["name"], {"_no_page": "1", "_page": "3"})
        self.assertIsNone(q.limit)
        self.assertIsNone(q.offset)
        self.assertFalse(q.paged)

    def test_no_page_zero_keeps_paging(self):
        q = build_query(["name"], {"_no_page": "0"})
        self.assertEqual((q.limit, q.offset), (50, 0))

    def test_page_size_is_clamped(self):
        for raw in ("200", "201", "5000"):
            q = build_query(["name"], {"_page_size": raw})
            self.assertEqual(q.limit, 200)

    def test_page_size_ceiling_is_configurable(self):
        q = build_query(["name"], {"_page_size": "80"}, max_page_size=25)
        self.assertEqual(q.limit, 25)

    def test_explicit_offset_wins(self):
        q = build_query(["name"], {"_offset": "7", "_page": "3", "_page_size": "10"})
        self.assertEqual((q.limit, q.offset), (10, 7))
        q = build_query(["name"], {"_offset": "0", "_page": "9"})
        self.assertEqual(q.offset, 0)

    def test_defaults(self):
        q = build_query(["name"], {})
        self.assertEqual((q.limit, q.offset), (50, 0))
        self.assertEqual(q.sort, [SortClause(column="id", direction="DESC")])
        self.assertEqual(q.filters, [])
        self.assertEqual(q.logical_op, "AND")

    def test_malformed_paging_falls_back_to_defaults(self):
        q = build_query(["name"], {"_page": "abc", "_page_size": "-4"})
        self.assertEqual((q.limit, q.offset), (1, 0))
        q = build_query(["name"], {"_page": "0", "_page_size": "x"})
        self.assertEqual((q.limit, q.offset), (50, 0))

    def test_default_sort_uses_primary_key(self):
        q = build_query(["name"], {}, primary_key="isbn")
        self.assertEqual(q.sort_by, "isbn DESC")

    def test_order_param(self):
        q = build_query(["name"], {"_order": "name asc, age desc"})
        self.assertEqual(q.sort_by, "name ASC, age DESC")

    def test_sort_and_dir_params(self):
        q = build_query(["name"], {"_sort": "name", "_dir": "desc"})
        self.assertEqual(q.sort, [SortClause(column="name", direction="DESC")])
        q = build_query(["name"], {"_sort": "name"})
        self.assertEqual(q.sort_by, "name ASC")

    def test_unknown_dir_is_ignored(self):
        q = build_query(["title"], {"_sort": "title", "_dir": "sideways"})
        self.assertEqual(q.sort, [SortClause(column="title", direction="ASC")])

    def test_order_takes_precedence_over_sort(self):
        q = build_query(["name"], {"_order": "age DESC", "_sort": "name", "_dir": "asc"})
        self.assertEqual(q.sort_by, "age DESC")

    def test_missing_field_names_is_a_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            build_query(None, {"name": "x"})
        with self.assertRaises(ConfigurationError):
            build_query([], {"name": "x"}, field_names_resolver=lambda: [])

    def test_field_names_resolver_is_used(self):
        q = build_query(None, {"name": "x"}, field_names_resolver=lambda: ["name"])
        self.assertEqual([f.field for f in q.filters], ["name"])

    def test_raw_params_and_plain_string(self):
        q = build_query(["name", "age"], {"name": ["a", "b"], "age": "5", "_op": "OR"})
        self.assertEqual(q.raw_params, {"name": ["a", "b"], "age": ["5"]})
        self.assertEqual(q.plain_query_str, "age = 5 OR name = a or b")
        self.assertEqual(query_as_string({"x": [""], "y": ["1"]}), "y = 1")

    def test_query_builder_uses_controller_config(self):
        config = CrudConfig(model_name="Thing", primary_key="code", page_size=20, ne_sign="<>", use_ilike=True)
        q = QueryBuilder(config, treat_like_int={"year"}).build(
            ["name", "year", "age"],
            {"name": "a*", "year": "19%", "age": "!3"},
        )
        by_field = {f.field: f for f in q.filters}
        self.assertEqual(by_field["name"].token, "ilike")
        self.assertEqual(by_field["year"].op, "RANGE_GE")
        self.assertEqual(by_field["age"].token, "<>")
        self.assertEqual((q.limit, q.sort_by), (20, "code DESC"))


class QueryDescriptorTests(unittest.TestCase):
    def test_limit_and_offset_travel_together(self):
        with self.assertRaises(ValidationError):
            QueryDescriptor(limit=10)
        with self.assertRaises(ValidationError):
            QueryDescriptor(offset=10)
        self.assertTrue(QueryDescriptor(limit=10, offset=0).paged)

    def test_negative_paging_rejected(self):
        with self.assertRaises(ValidationError):
            QueryDescriptor(limit=-1, offset=0)


if __name__ == "__main__":
    unittest.main()
