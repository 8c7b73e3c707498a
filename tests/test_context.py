"""
Tests for Mocker Request Context

Tests request snapshot construction including:
- Case-insensitive headers (first value wins)
- JSON body parsing
- Query parameters
- Immutability
"""

import dataclasses

import pytest

from mocker.mock.context import HeaderMap, RequestContext


class TestHeaderMap:
    """Test HeaderMap mapping."""

    def test_case_insensitive_lookup(self):
        """Test lookups ignore header name case."""
        headers = HeaderMap({'X-Env': 'test'})

        assert headers['x-env'] == 'test'
        assert headers['X-ENV'] == 'test'
        assert 'x-EnV' in headers

    def test_first_value_wins(self):
        """Test repeated headers keep the first value."""
        headers = HeaderMap([('X-Tag', 'a'), ('x-tag', 'b')])

        assert headers['X-Tag'] == 'a'
        assert len(headers) == 1

    def test_get_all_values(self):
        """Test every value of a repeated header is kept in order."""
        headers = HeaderMap([('X-Tag', 'a'), ('x-tag', 'b'), ('Other', 'c')])

        assert headers.get_all('X-TAG') == ['a', 'b']
        assert headers.get_all('missing') == []

    def test_raw_byte_pairs(self):
        """Test raw ASGI header pairs are decoded."""
        headers = HeaderMap([(b'content-type', b'application/json')])

        assert headers['Content-Type'] == 'application/json'

    def test_missing_and_non_string_keys(self):
        """Test missing or non-string keys behave like absent headers."""
        headers = HeaderMap({'A': '1'})

        assert headers.get('B') is None
        assert headers.get(1) is None
        assert 1 not in headers

    def test_original_names(self):
        """Test original header spelling is kept."""
        headers = HeaderMap({'X-Env': 'test'})

        assert headers.original_names() == {'X-Env': 'test'}
        assert list(headers) == ['x-env']


class TestRequestContext:
    """Test RequestContext creation."""

    def test_create_parses_json_body(self):
        """Test JSON bodies are parsed."""
        context = RequestContext.create('POST', '/users', body=b'{"name": "Ada"}')

        assert context.json == {'name': 'Ada'}
        assert context.text == '{"name": "Ada"}'

    @pytest.mark.parametrize('body', [b'', b'not json', None])
    def test_non_json_body(self, body):
        """Test invalid or empty bodies give json=None."""
        context = RequestContext.create('POST', '/users', body=body)

        assert context.json is None

    def test_string_body_encoded(self):
        """Test str bodies are stored as bytes."""
        context = RequestContext.create('POST', '/x', body='héllo')

        assert context.body == 'héllo'.encode('utf-8')

    def test_query_first_value(self):
        """Test query parameters keep the first value per key."""
        context = RequestContext.create('GET', 'http://testserver/search?q=a&q=b&empty=')

        assert dict(context.query) == {'q': 'a', 'empty': ''}
        assert context.path == '/search'

    def test_explicit_path(self):
        """Test an explicit decoded path overrides the URL path."""
        context = RequestContext.create('GET', 'http://testserver/a%20b', path='/a b')

        assert context.path == '/a b'

    def test_header_helpers(self):
        """Test has_header and header helpers."""
        context = RequestContext.create('GET', '/', headers={'X-Env': 'TEST'})

        assert context.has_header('x-env')
        assert context.header('X-ENV') == 'TEST'
        assert context.header('X-Missing') is None

    def test_context_is_frozen(self):
        """Test the context cannot be modified."""
        context = RequestContext.create('GET', '/', params={'id': '1'})

        with pytest.raises(dataclasses.FrozenInstanceError):
            context.method = 'POST'
        with pytest.raises(TypeError):
            context.params['id'] = '2'

    def test_params_copied(self):
        """Test later changes to the source params do not leak in."""
        params = {'id': '1'}
        context = RequestContext.create('GET', '/', params=params)
        params['id'] = '2'

        assert context.params['id'] == '1'

    def test_document_keys(self):
        """Test the expression document exposes request data."""
        context = RequestContext.create(
            'GET', 'http://testserver/users/42?x=1',
            headers={'Accept': 'text/plain'},
            params={'id': '42'}
        )
        document = context.document

        assert document['params']['id'] == '42'
        assert document['method'] == 'GET'
        assert document['path'] == '/users/42'
        assert document['url'] == 'http://testserver/users/42?x=1'
        assert document['headers']['accept'] == 'text/plain'
        assert document['query']['x'] == '1'
        assert document['request']['method'] == 'GET'
        assert document['json'] is None

    def test_to_dict_uses_plain_dicts(self):
        """Test to_dict returns plain dicts with lower-cased header names."""
        context = RequestContext.create('GET', '/', headers={'X-Env': 'test'})
        data = context.to_dict()

        assert type(data['headers']) is dict
        assert data['headers'] == {'x-env': 'test'}
        assert data['request']['headers'] == {'x-env': 'test'}
