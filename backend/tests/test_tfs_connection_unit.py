"""Testes unitários da TfsConnection e da fábrica, com sessão HTTP falsa."""
from unittest.mock import MagicMock, patch

import pytest
import requests
from requests.auth import HTTPBasicAuth

from buildmaster_tfs.exceptions import TfsAuthenticationError, TfsConnectionError
from buildmaster_tfs.services.tfs_connection import (
    TfsConnection,
    TfsConnectionFactory,
    server_url_from_collection_url,
)
from buildmaster_tfs.utils.wiql import WiqlQuery

BASE = "http://tfs:8080/tfs/DefaultCollection"


def _response(payload=None, status_code=200, url=BASE, content_type="application/json"):
    r = MagicMock()
    r.status_code = status_code
    r.url = url
    r.headers = {"Content-Type": content_type}
    r.json.return_value = payload or {}
    return r


def _connection(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return TfsConnection(BASE, session), session


def test_server_url_from_collection_url():
    assert server_url_from_collection_url(BASE) == "http://tfs:8080/tfs"
    assert server_url_from_collection_url(BASE + "/") == "http://tfs:8080/tfs"
    assert server_url_from_collection_url("https://tfs/Coll") == "https://tfs"


def test_context_manager_closes_session():
    conn, session = _connection()
    with conn:
        pass
    session.close.assert_called_once()


def test_query_work_items_posts_wiql_then_fetches_fields():
    conn, session = _connection(
        _response({"workItems": [{"id": 3}, {"id": 1}]}),
        _response({"value": [{"id": 3, "rev": 1, "fields": {"System.Title": "c"}}, {"id": 1, "rev": 2, "fields": {}}]}),
    )
    query = WiqlQuery(["System.Id", "System.Title"]).order_by("System.Id")
    items = conn.query_work_items(query)

    assert [i.id for i in items] == [3, 1]
    first, second = session.request.call_args_list
    assert first.kwargs["method"] == "POST"
    assert first.kwargs["url"] == f"{BASE}/_apis/wit/wiql"
    assert first.kwargs["json"] == {"query": query.render()}
    assert first.kwargs["params"]["api-version"] == "5.0"
    assert second.kwargs["url"] == f"{BASE}/_apis/wit/workitems"
    assert second.kwargs["params"]["ids"] == "3,1"
    assert second.kwargs["params"]["fields"] == "System.Id,System.Title"


def test_query_without_results_makes_single_request():
    conn, session = _connection(_response({"workItems": []}))
    assert conn.query_work_items("SELECT [System.Id] FROM WorkItems") == []
    assert session.request.call_count == 1


def test_work_items_fetched_in_batches_of_200():
    ids = [str(i) for i in range(1, 451)]
    conn, session = _connection(_response({"value": []}), _response({"value": []}), _response({"value": []}))
    conn.get_work_items_by_ids(ids)
    batches = [c.kwargs["params"]["ids"].split(",") for c in session.request.call_args_list]
    assert [len(b) for b in batches] == [200, 200, 50]


def test_update_work_item_uses_json_patch():
    conn, session = _connection(_response({"id": 7, "rev": 4, "fields": {"System.State": "Closed"}}))
    ops = [{"op": "add", "path": "/fields/System.State", "value": "Closed"}]
    wi = conn.update_work_item(7, ops)
    assert wi.rev == 4
    call = session.request.call_args
    assert call.kwargs["method"] == "PATCH"
    assert call.kwargs["json"] == ops
    assert call.kwargs["headers"]["Content-Type"] == "application/json-patch+json"


def test_get_work_item_url_from_links():
    conn, session = _connection(
        _response({"id": 5, "rev": 1, "fields": {}, "_links": {"html": {"href": "http://tfs/web/wi.aspx?id=5"}}})
    )
    assert conn.get_work_item_url(5) == "http://tfs/web/wi.aspx?id=5"
    assert session.request.call_args.kwargs["params"]["$expand"] == "links"


def test_get_work_item_url_missing_link():
    conn, _ = _connection(_response({"id": 5, "rev": 1, "fields": {}}))
    with pytest.raises(TfsConnectionError):
        conn.get_work_item_url(5)


def test_collections_and_projects_use_server_url():
    conn, session = _connection(
        _response({"value": [{"id": "c1", "name": "DefaultCollection"}]}),
        _response({"value": [{"id": "p1", "name": "Web App"}]}),
    )
    collections = conn.list_project_collections()
    projects = conn.list_projects("DefaultCollection")
    assert collections[0].name == "DefaultCollection"
    assert projects[0].name == "Web App"
    urls = [c.kwargs["url"] for c in session.request.call_args_list]
    assert urls == [
        "http://tfs:8080/tfs/_apis/projectCollections",
        "http://tfs:8080/tfs/DefaultCollection/_apis/projects",
    ]


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_errors(status_code):
    conn, _ = _connection(_response(status_code=status_code))
    with pytest.raises(TfsAuthenticationError):
        conn.ensure_authenticated()


def test_signin_redirect_is_auth_error():
    conn, _ = _connection(_response(url="http://tfs/_signin?realm=x", content_type="text/html"))
    with pytest.raises(TfsAuthenticationError):
        conn.ensure_authenticated()


def test_network_error_is_connection_error():
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("recusado")
    conn = TfsConnection(BASE, session)
    with pytest.raises(TfsConnectionError):
        conn.ensure_authenticated()


class TestFindBuild:
    """Testes de find_build."""

    def test_drop_from_file_path_artifact(self):
        conn, session = _connection(
            _response({"value": [{"id": 12, "name": "Web-CI"}]}),
            _response({"value": [{"id": 99, "buildNumber": "Web-CI_1", "result": "succeeded"}]}),
            _response({"value": [
                {"name": "logs", "resource": {"type": "Container", "data": "#/1/logs"}},
                {"name": "drop", "resource": {"type": "FilePath", "data": "\\\\srv\\drops\\Web-CI_1"}},
            ]}),
        )
        build = conn.find_build("Web App", "Web-CI", "Web-CI_1")
        assert build.build_number == "Web-CI_1"
        assert build.drop_location == "\\\\srv\\drops\\Web-CI_1\\drop"
        definitions, builds, _ = session.request.call_args_list
        assert definitions.kwargs["url"] == f"{BASE}/Web%20App/_apis/build/definitions"
        assert builds.kwargs["params"]["definitions"] == 12
        assert builds.kwargs["params"]["buildNumber"] == "Web-CI_1"
        assert builds.kwargs["params"]["resultFilter"] == "succeeded"

    def test_xaml_drop_location(self):
        conn, session = _connection(
            _response({"value": [{"id": 12}]}),
            _response({"value": [{"id": 99, "buildNumber": "B", "result": "succeeded", "dropLocation": "\\\\srv\\d\\B"}]}),
        )
        assert conn.find_build("Web", "Web-CI").drop_location == "\\\\srv\\d\\B"
        assert "buildNumber" not in session.request.call_args.kwargs["params"]

    def test_unknown_definition(self):
        conn, _ = _connection(_response({"value": []}))
        assert conn.find_build("Web", "Nope") is None

    def test_no_builds(self):
        conn, _ = _connection(_response({"value": [{"id": 12}]}), _response({"value": []}))
        assert conn.find_build("Web", "Web-CI") is None

    def test_include_unsuccessful(self):
        conn, session = _connection(
            _response({"value": [{"id": 12}]}),
            _response({"value": [{"id": 99, "buildNumber": "B", "result": "failed", "dropLocation": "\\\\d"}]}),
        )
        build = conn.find_build("Web", "Web-CI", include_unsuccessful=True)
        assert build is not None and not build.succeeded
        assert "resultFilter" not in session.request.call_args.kwargs["params"]

    def test_unsuccessful_build_discarded(self):
        conn, _ = _connection(
            _response({"value": [{"id": 12}]}),
            _response({"value": [{"id": 99, "buildNumber": "B", "result": "partiallySucceeded", "dropLocation": "\\\\d"}]}),
        )
        assert conn.find_build("Web", "Web-CI") is None


class TestConnectionFactory:
    """Testes da TfsConnectionFactory."""

    def test_requires_base_url(self):
        with patch("buildmaster_tfs.services.tfs_connection.settings") as s:
            s.TFS_BASE_URL = ""
            with pytest.raises(ValueError):
                TfsConnectionFactory()

    def test_explicit_credentials_with_domain(self):
        factory = TfsConnectionFactory(BASE, use_system_credentials=False, username="deploy", password="s3cr3t", domain="CORP")
        assert factory.account_name == "CORP\\deploy"
        session = factory._create_session()
        assert isinstance(session.auth, HTTPBasicAuth)
        assert session.auth.username == "CORP\\deploy"
        assert session.auth.password == "s3cr3t"

    def test_explicit_credentials_without_domain(self):
        factory = TfsConnectionFactory(BASE, use_system_credentials=False, username="deploy", password="x", domain="")
        assert factory.account_name == "deploy"

    def test_system_credentials_with_service_principal(self):
        token_provider = MagicMock(side_effect=["token-1", "token-2"])
        factory = TfsConnectionFactory(BASE, use_system_credentials=True, token_provider=token_provider)
        session = factory._create_session()
        assert session.headers["Authorization"] == "Bearer token-1"
        assert session.auth is None
        assert factory._create_session().headers["Authorization"] == "Bearer token-2"

    def test_refused_token_opens_no_session(self):
        token_provider = MagicMock(side_effect=TfsAuthenticationError("recusado"))
        factory = TfsConnectionFactory(BASE, use_system_credentials=True, token_provider=token_provider)
        with patch("buildmaster_tfs.services.tfs_connection.requests.Session") as session_cls:
            with pytest.raises(TfsAuthenticationError):
                factory.open()
        session_cls.assert_not_called()

    def test_open_authenticates(self):
        factory = TfsConnectionFactory(BASE, use_system_credentials=False, username="u", password="p", domain="")
        with patch.object(TfsConnection, "ensure_authenticated") as ensure:
            conn = factory.open()
        ensure.assert_called_once()
        assert conn.base_url == BASE
        assert conn.server_url == "http://tfs:8080/tfs"
        conn.close()

    def test_open_closes_session_when_authentication_fails(self):
        factory = TfsConnectionFactory(BASE, use_system_credentials=False, username="u", password="p", domain="")
        with patch.object(TfsConnection, "ensure_authenticated", side_effect=TfsAuthenticationError("negado")), \
                patch.object(TfsConnection, "close") as close:
            with pytest.raises(TfsAuthenticationError):
                factory.open()
        close.assert_called_once()
