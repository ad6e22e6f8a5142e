"""
Property-based tests for data models.

These tests verify parameter equality, filter freezing and result identity
extraction across randomly generated inputs.
"""

from hypothesis import given, settings, strategies as st

from search_discovery.models import (
    BackendMode,
    MaxDistanceStrategy,
    ResultItem,
    SearchParameters,
    freeze_filters,
)


filter_keys = st.sampled_from(["kind", "year", "resource_type", "language", "year_min"])
filter_values = st.lists(st.text(alphabet="abcdefgh0123", min_size=1, max_size=6), min_size=1, max_size=4)
filter_maps = st.dictionaries(filter_keys, filter_values, max_size=4)
identifiers = st.text(alphabet="abcdef0123456789-", min_size=1, max_size=20)


@given(filters=filter_maps)
@settings(max_examples=100)
def test_filter_order_does_not_affect_equality(filters):
    """
    Parameters built from the same filters in any order compare equal.
    """
    reordered = {key: list(reversed(values)) for key, values in reversed(list(filters.items()))}

    first = SearchParameters.create(filters=filters, query="sleep")
    second = SearchParameters.create(filters=reordered, query="sleep")

    assert first == second
    assert hash(first) == hash(second)


@given(filters=filter_maps)
@settings(max_examples=100)
def test_filter_map_round_trips_selected_values(filters):
    """
    filter_map() returns every selected value, deduplicated and sorted.
    """
    params = SearchParameters.create(filters=filters)

    mapped = params.filter_map()

    assert set(mapped) == set(filters)
    for key, values in filters.items():
        assert mapped[key] == sorted(set(values))


@given(query=st.text(max_size=20), weight=st.floats(min_value=0, max_value=1))
@settings(max_examples=100)
def test_any_field_change_breaks_equality(query, weight):
    """
    Changing a single field yields parameters that compare unequal.
    """
    params = SearchParameters(query=query, hybrid_weight=weight)

    assert params.with_changes(query=query + "x") != params
    assert params.with_changes(selected_category="papers") != params
    assert params.with_changes(direct_match_weight=params.direct_match_weight + 0.1) != params
    assert params.with_changes(query=query) == params


def test_enum_fields_accept_strings():
    """Test that plain strings are coerced to the enum members."""
    params = SearchParameters(mode="legacy", max_distance_strategy="min_score")

    assert params.mode is BackendMode.LEGACY
    assert params.max_distance_strategy is MaxDistanceStrategy.MIN_SCORE
    assert params == SearchParameters(mode=BackendMode.LEGACY, max_distance_strategy=MaxDistanceStrategy.MIN_SCORE)


def test_freeze_filters_accepts_single_string():
    """Test that a bare string value is treated as one selected value."""
    assert freeze_filters({"kind": "clinical"}) == (("kind", frozenset({"clinical"})),)
    assert freeze_filters(None) == ()


@given(uuid=identifiers, schema_id=identifiers, top_id=identifiers)
@settings(max_examples=100)
def test_identifier_precedence(uuid, schema_id, top_id):
    """
    extra_data.uuid wins over dataset_schema.identifier, which wins over id.
    """
    full = {'extra_data': {'uuid': uuid}, 'dataset_schema': {'identifier': [schema_id]}, 'id': top_id}
    no_uuid = {'dataset_schema': {'identifier': [schema_id]}, 'id': top_id}
    only_id = {'id': top_id}

    assert ResultItem.extract_id(full) == uuid
    assert ResultItem.extract_id(no_uuid) == schema_id
    assert ResultItem.extract_id(only_id) == top_id


def test_result_without_identifier_is_rejected():
    """Test that documents without any identifier yield no item."""
    assert ResultItem.from_dict({'dataset_schema': {'name': 'Nameless'}}) is None


def test_result_text_and_score_fallbacks():
    """Test description, name and score fallbacks."""
    item = ResultItem.from_dict({
        'id': 'a1',
        'cosine_similarity': 0.42,
        'extra_data': {'description': 'From extra', 'name': 'Extra name'},
    })

    assert item.id == 'a1'
    assert item.score == 0.42
    assert item.description == 'From extra'
    assert item.name == 'Extra name'

    preferred = ResultItem.from_dict({
        'id': 'a2',
        'score': 0.9,
        'cosine_similarity': 0.1,
        'dataset_schema': {'description': 'From schema', 'name': 'Schema name'},
        'extra_data': {'description': 'From extra'},
    })

    assert preferred.score == 0.9
    assert preferred.description == 'From schema'
    assert preferred.name == 'Schema name'
    assert ResultItem.from_dict({'id': 'a3'}).score == 0.0
