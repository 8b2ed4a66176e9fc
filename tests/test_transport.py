from unittest.mock import MagicMock

import pytest
import requests

from tests.testutil import parse_multipart
from vulcan.config import ServerEndpoint
from vulcan.errors import StreamError, TransportError
from vulcan.request_builder import Credentials, Rebuild, rebuild_body
from vulcan.transport import BUILD_ID_HEADER, BuildServerClient


@pytest.fixture
def client(build_server):
    client = BuildServerClient(build_server.endpoint)
    yield client
    client.close()


def test_submit_posts_multipart_with_content_length(build_server, client) -> None:
    build_server.route("POST", "/rebuild/7", headers={BUILD_ID_HEADER: "8"}, chunks=(b"rebuilding\n",))
    body = rebuild_body(Rebuild(build_id="7", credentials=Credentials(secret="s3cret")))

    with client.submit("/rebuild/7", body) as response:
        assert b"".join(response.iter_chunks()) == b"rebuilding\n"

    [recorded] = build_server.requests
    assert recorded.method == "POST"
    assert recorded.path == "/rebuild/7"
    assert recorded.headers["Content-Length"] == str(len(body))
    assert recorded.headers["Content-Type"] == body.content_type
    assert recorded.headers["User-Agent"].startswith("vulcan/")
    parts = parse_multipart(recorded.body, recorded.headers["Content-Type"])
    assert list(parts) == ["secret"]


def test_chunks_arrive_lazily_and_in_order(build_server, client) -> None:
    build_server.route("POST", "/make", headers={BUILD_ID_HEADER: "42"}, chunks=(b"compiling...\n", b"done\n"))
    body = rebuild_body(Rebuild(build_id="x", credentials=Credentials(secret="s")))

    with client.submit("/make", body) as response:
        chunks = response.iter_chunks()
        assert not response.exhausted
        assert b"".join(chunks) == b"compiling...\ndone\n"
        assert response.exhausted
        assert response.headers[BUILD_ID_HEADER] == "42"
        assert response.status_code == 200
        assert response.status_line == "200 OK"


def test_chunks_can_only_be_consumed_once(build_server, client) -> None:
    build_server.route("POST", "/make", chunks=(b"log\n",))
    body = rebuild_body(Rebuild(build_id="x", credentials=Credentials(secret="s")))

    with client.submit("/make", body) as response:
        list(response.iter_chunks())
        with pytest.raises(StreamError, match="already been consumed"):
            response.iter_chunks()


def test_connection_refused_names_endpoint(refused_endpoint) -> None:
    client = BuildServerClient(refused_endpoint)
    body = rebuild_body(Rebuild(build_id="7", credentials=Credentials(secret="s")))

    with pytest.raises(TransportError) as excinfo:
        client.submit("/rebuild/7", body)

    assert excinfo.value.endpoint == str(refused_endpoint)
    assert str(refused_endpoint) in str(excinfo.value)


def test_stream_cut_mid_body_keeps_delivered_chunks(build_server, client) -> None:
    build_server.route("POST", "/make", chunks=(b"compiling...\n",), abort_after_chunks=True)
    body = rebuild_body(Rebuild(build_id="x", credentials=Credentials(secret="s")))
    received = []

    with client.submit("/make", body) as response:
        with pytest.raises(StreamError, match="Lost connection"):
            for chunk in response.iter_chunks():
                received.append(chunk)
        assert not response.exhausted

    assert b"".join(received) == b"compiling...\n"


def test_artifact_url_quotes_build_id(build_server, client) -> None:
    assert client.artifact_url("abc123") == f"{build_server.url}/output/abc123"
    assert client.artifact_url("a/b") == f"{build_server.url}/output/a%2Fb"


def test_any_request_failure_becomes_transport_error() -> None:
    session = MagicMock()
    session.request.side_effect = requests.exceptions.InvalidURL("Failed to parse")
    client = BuildServerClient(ServerEndpoint(host="bad host", port=80), session=session)
    body = rebuild_body(Rebuild(build_id="7", credentials=Credentials(secret="s")))

    with pytest.raises(TransportError) as excinfo:
        client.submit("/rebuild/7", body)

    assert excinfo.value.endpoint == "bad host:80"
