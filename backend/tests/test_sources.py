from unittest import mock

import pytest
import requests

from featchain.services.validation import MusicBrainzSource, SourceResponseError, TransientSourceError, WikidataSource
from featchain.services.validation.http import JsonHttpClient
from featchain.services.validation.retry import call_with_retry, should_retry_http_status


def response(status=200, body=None):
    resp = mock.Mock(status_code=status)
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body if body is not None else {}
    return resp


def make_client(*responses, attempts=3):
    session = mock.Mock()
    session.headers = {}
    session.get.side_effect = list(responses)
    sleeps = []
    client = JsonHttpClient('https://example.test/ws/2/', 'featchain-tests/1.0', timeout=2,
                            retry_attempts=attempts, retry_delay=0.5, session=session, sleep=sleeps.append)
    return client, session, sleeps


@pytest.mark.parametrize('status, expected', [(408, True), (429, True), (503, True), (400, False), (404, False)])
def test_should_retry_http_status(status, expected):
    assert should_retry_http_status(status) is expected


def test_call_with_retry_gives_up_after_budget():
    calls = []

    def flaky():
        calls.append(1)
        raise TransientSourceError('boom')

    with pytest.raises(TransientSourceError):
        call_with_retry(flaky, attempts=3, delay=0, sleep=lambda s: None)
    assert len(calls) == 3


def test_client_retries_transient_failures_then_succeeds():
    client, session, sleeps = make_client(
        requests.ConnectionError('reset'),
        response(503),
        response(200, {'ok': True}),
    )
    assert client.get_json('/artist', {'query': 'x'}) == {'ok': True}
    assert session.get.call_count == 3
    assert sleeps == [0.5, 0.5]
    url = session.get.call_args[0][0]
    assert url == 'https://example.test/ws/2/artist'
    assert session.get.call_args[1]['timeout'] == 2
    assert session.headers['User-Agent'] == 'featchain-tests/1.0'


def test_client_does_not_retry_client_errors():
    client, session, sleeps = make_client(response(400))
    with pytest.raises(SourceResponseError):
        client.get_json('/artist')
    assert session.get.call_count == 1
    assert sleeps == []


def test_client_rejects_non_json_body():
    client, _, _ = make_client(response(200, ValueError('not json')))
    with pytest.raises(SourceResponseError):
        client.get_json()


def test_client_exhausts_retries():
    client, session, _ = make_client(requests.Timeout('slow'), requests.Timeout('slow'), attempts=2)
    with pytest.raises(TransientSourceError):
        client.get_json('/recording')
    assert session.get.call_count == 2


def test_musicbrainz_prefers_exact_match():
    client = mock.Mock()
    client.get_json.side_effect = [
        {'artists': [{'id': 'mb-1', 'name': 'Booba Fan Club'}, {'id': 'mb-2', 'name': 'BOOBA'}]},
        {'aliases': [{'name': 'B2O'}, {'name': ''}]},
    ]
    resolved = MusicBrainzSource(client).resolve(' booba ')
    assert resolved.mbid == 'mb-2'
    assert resolved.canonical_name == 'BOOBA'
    assert resolved.aliases == ['B2O']
    assert client.get_json.call_args_list[1][0] == ('/artist/mb-2', {'fmt': 'json', 'inc': 'aliases'})


def test_musicbrainz_falls_through_search_strategies():
    client = mock.Mock()
    client.get_json.side_effect = [
        {'artists': []},
        {'artists': []},
        {'artists': [{'id': 'mb-9', 'name': 'Something Else'}]},
        SourceResponseError('aliases down'),
    ]
    resolved = MusicBrainzSource(client).resolve('Smthng')
    assert resolved.mbid == 'mb-9'
    assert resolved.aliases == []
    queries = [c[0][1]['query'] for c in client.get_json.call_args_list[:3]]
    assert queries == ['artist:"Smthng"', 'artist:Smthng', 'Smthng']


def test_musicbrainz_unresolved():
    client = mock.Mock()
    client.get_json.return_value = {'artists': []}
    assert MusicBrainzSource(client).resolve('zzz') is None
    assert MusicBrainzSource(client).resolve('   ') is None


def test_musicbrainz_relation_is_recording_level():
    client = mock.Mock()
    client.get_json.return_value = {'recordings': [{'id': 'rec'}]}
    assert MusicBrainzSource(client).relation_exists('a', 'b')
    path, params = client.get_json.call_args[0]
    assert path == '/recording'
    assert params['query'] == 'arid:a AND arid:b'


def test_musicbrainz_known_relations():
    client = mock.Mock()
    client.get_json.return_value = {'recordings': [
        {'artist-credit': [{'artist': {'id': 'me'}}, {'artist': {'id': 'x'}}]},
        {'artist-credit': [{'artist': {'id': 'me'}}, {'name': 'feat.'}, {'artist': {'id': 'y'}}]},
        {'artist-credit': [{'artist': {'id': 'me'}}, {'artist': {'id': 'x'}}]},
    ]}
    assert MusicBrainzSource(client).known_relations('me') == ['x', 'y']


def test_wikidata_finds_id_and_shared_work():
    client = mock.Mock()

    def get_json(path, params):
        query = params['query']
        if 'P175' in query:
            return {'results': {'bindings': [{'track': {'value': 'http://www.wikidata.org/entity/Q1'}}]}}
        if '"Booba"' in query:
            return {'results': {'bindings': [{'item': {'value': 'http://www.wikidata.org/entity/Q559453'}}]}}
        if '"Sefyu"' in query and 'Q1597618' in query:
            return {'results': {'bindings': [{'item': {'value': 'http://www.wikidata.org/entity/Q3479282'}}]}}
        return {'results': {'bindings': []}}

    client.get_json.side_effect = get_json
    source = WikidataSource(client)
    assert source.find_id('Sefyu') == 'Q3479282'
    assert source.relation_exists('Booba', 'Sefyu')


def test_wikidata_caches_ids():
    client = mock.Mock()
    client.get_json.return_value = {'results': {'bindings': []}}
    source = WikidataSource(client)
    assert source.find_id('Nobody') is None
    assert source.find_id('nobody ') is None
    # Two classes tried once, then served from the cache
    assert client.get_json.call_count == 2
    assert not source.relation_exists('Nobody', 'Nobody')


def test_sources_build_from_config():
    config = {
        'MUSICBRAINZ_BASE_URL': 'https://mb.test/ws/2',
        'WIKIDATA_SPARQL_URL': 'https://wd.test/sparql',
        'HTTP_USER_AGENT': 'ua',
        'HTTP_TIMEOUT_SEC': 3,
    }
    mb = MusicBrainzSource.from_config(config)
    wd = WikidataSource.from_config(config)
    assert mb.client.base_url == 'https://mb.test/ws/2'
    assert mb.client.timeout == 3
    assert wd.client.session.headers['Accept'] == 'application/sparql-results+json'
