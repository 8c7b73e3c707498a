"""
Tests for Mocker Route Table

Tests route table construction including:
- Route defaults (name, status code)
- Shape validation
- Pattern lookup order
- Atomic table replacement
"""

import pytest

from mocker.mock.routes import ActiveRoutes, Route, RouteTable


@pytest.fixture
def sample_routes():
    """Sample routes section of a configuration."""
    return {
        '/users/me': {
            'GET': [{'name': 'current user', 'response': 'me'}]
        },
        '/users/{id}': {
            'get': [
                {'conditions': ['params.id == "1"'], 'response': 'admin'},
                {'response': 'user ${params.id}', 'code': 0}
            ],
            'delete': [{'code': 204}]
        }
    }


class TestRoute:
    """Test Route dataclass."""

    def test_defaults(self):
        """Test defaults for an empty entry."""
        route = Route.from_dict({}, 3)

        assert route.name == 'route #3'
        assert route.code == 200
        assert route.conditions == ()
        assert route.response == ''
        assert dict(route.headers) == {}

    def test_none_entry(self):
        """Test a null list entry is treated as empty."""
        route = Route.from_dict(None, 1)

        assert route.name == 'route #1'

    def test_zero_code_defaults_to_200(self):
        """Test code 0 means default status."""
        assert Route.from_dict({'code': 0}, 1).code == 200

    def test_numeric_string_code(self):
        """Test numeric string status codes are accepted."""
        assert Route.from_dict({'code': '201'}, 1).code == 201

    def test_single_condition_string(self):
        """Test a single condition string becomes a one-element tuple."""
        route = Route.from_dict({'conditions': 'method("get")'}, 1)

        assert route.conditions == ('method("get")',)

    def test_headers_are_read_only(self):
        """Test header mapping cannot be mutated."""
        route = Route.from_dict({'headers': {'X-Test': 'yes'}}, 1)

        with pytest.raises(TypeError):
            route.headers['X-Test'] = 'no'

    def test_header_values_stringified(self):
        """Test non-string header values are converted to strings."""
        route = Route.from_dict({'headers': {'X-Count': 5}}, 1)

        assert route.headers['X-Count'] == '5'

    @pytest.mark.parametrize('data', [
        {'conditions': 5},
        {'headers': ['X-Test']},
        {'code': 'abc'},
        {'code': True},
        'not a mapping',
    ])
    def test_invalid_entries(self, data):
        """Test malformed entries raise ValueError."""
        with pytest.raises(ValueError):
            Route.from_dict(data, 1)

    def test_to_dict(self):
        """Test converting route to dictionary."""
        route = Route.from_dict({'name': 'r', 'conditions': ['true'], 'headers': {'A': 'b'}}, 1)

        assert route.to_dict() == {
            'name': 'r',
            'conditions': ['true'],
            'response': '',
            'code': 200,
            'headers': {'A': 'b'}
        }


class TestRouteTable:
    """Test RouteTable class."""

    def test_methods_lower_cased(self, sample_routes):
        """Test method keys are lower-cased."""
        table = RouteTable.from_dict(sample_routes)

        assert set(table.methods('/users/me')) == {'get'}

    def test_route_order_preserved(self, sample_routes):
        """Test routes keep configuration order and default names."""
        table = RouteTable.from_dict(sample_routes)
        routes = table.methods('/users/{id}')['get']

        assert [r.response for r in routes] == ['admin', 'user ${params.id}']
        assert [r.name for r in routes] == ['route #1', 'route #2']
        assert routes[1].code == 200

    def test_find_first_pattern_wins(self, sample_routes):
        """Test the first matching pattern in configuration order is used."""
        table = RouteTable.from_dict(sample_routes)

        lookup = table.find('/users/me')

        assert lookup.pattern == '/users/me'
        assert dict(lookup.params) == {}

    def test_find_extracts_params(self, sample_routes):
        """Test lookup returns extracted params and method buckets."""
        table = RouteTable.from_dict(sample_routes)

        lookup = table.find('/users/42')

        assert lookup.pattern == '/users/{id}'
        assert dict(lookup.params) == {'id': '42'}
        assert 'delete' in lookup.methods

    def test_find_no_match(self, sample_routes):
        """Test lookup of an unknown path."""
        table = RouteTable.from_dict(sample_routes)

        assert table.find('/unknown') is None

    def test_len_counts_routes(self, sample_routes):
        """Test len() counts every route."""
        table = RouteTable.from_dict(sample_routes)

        assert len(table) == 4
        assert table.patterns == ('/users/me', '/users/{id}')

    def test_empty_routes(self):
        """Test a table without routes."""
        table = RouteTable.from_dict(None)

        assert len(table) == 0
        assert table.port == 8080

    def test_table_is_read_only(self, sample_routes):
        """Test buckets cannot be modified."""
        table = RouteTable.from_dict(sample_routes)

        with pytest.raises(TypeError):
            table.methods('/users/me')['post'] = ()

    @pytest.mark.parametrize('routes', [
        ['not', 'a', 'mapping'],
        {'/x': ['get']},
        {'/x': {'get': {'response': 'not a list'}}},
        {'/x': {'get': [{'code': 'abc'}]}},
    ])
    def test_invalid_shapes(self, routes):
        """Test malformed route sections raise ValueError."""
        with pytest.raises(ValueError):
            RouteTable.from_dict(routes)

    def test_invalid_route_error_mentions_location(self):
        """Test errors name the pattern and method."""
        with pytest.raises(ValueError, match=r'/x get'):
            RouteTable.from_dict({'/x': {'get': [{'code': 'abc'}]}})


class TestActiveRoutes:
    """Test ActiveRoutes holder."""

    def test_swap_replaces_reference(self):
        """Test swap publishes the new table and returns the old one."""
        old = RouteTable.from_dict({'/a': {'get': [{}]}})
        new = RouteTable.from_dict({'/b': {'get': [{}]}})
        routes = ActiveRoutes(old)

        previous = routes.swap(new)

        assert previous is old
        assert routes.current is new
        assert routes.version == 2

    def test_snapshot_unchanged_by_swap(self):
        """Test a table taken before a swap is unaffected by it."""
        old = RouteTable.from_dict({'/a': {'get': [{}]}})
        routes = ActiveRoutes(old)
        snapshot = routes.current

        routes.swap(RouteTable.from_dict({'/b': {'get': [{}]}}))

        assert snapshot.find('/a') is not None
        assert snapshot.find('/b') is None
