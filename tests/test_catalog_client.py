"""Test the remote catalog client"""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from drive_player.catalog import GRAPH_BASE_URL, CatalogClient, StaticTokenProvider
from drive_player.core import AuthError, DecodeError, NetworkError, NotFoundError

from tests.conftest import graph_response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return CatalogClient(credentials=StaticTokenProvider("token-1"), session=session)


class TestListing:
    """Test folder listings"""

    def test_list_root(self, client, session, sample_listing):
        session.get.return_value = graph_response(sample_listing)

        items = client.list_children()

        assert [item.id for item in items] == ["F1", "T1", "D1", "F2"]
        url = session.get.call_args.args[0]
        kwargs = session.get.call_args.kwargs
        assert url == f"{GRAPH_BASE_URL}/me/drive/items/root/children"
        assert kwargs["params"] == {"$select": "id,name,folder,file,webUrl"}
        assert kwargs["headers"]["Authorization"] == "Bearer token-1"

    def test_list_folder_by_id(self, client, session):
        session.get.return_value = graph_response({"value": []})

        assert client.list_children("ABC123") == []
        assert session.get.call_args.args[0].endswith("/me/drive/items/ABC123/children")

    def test_page_size_sent_as_top(self, session):
        client = CatalogClient(StaticTokenProvider("t"), session=session, page_size=50)
        session.get.return_value = graph_response({"value": []})

        client.list_children()

        assert session.get.call_args.kwargs["params"]["$top"] == 50

    def test_page_exposes_next_link(self, client, session):
        session.get.return_value = graph_response({
            "value": [],
            "@odata.nextLink": "https://graph.example/next",
        })

        page = client.list_children_page("F1")

        assert page.has_more
        assert page.next_link == "https://graph.example/next"

    def test_list_all_children_follows_next_links(self, client, session):
        session.get.side_effect = [
            graph_response({
                "value": [{"id": "A", "name": "a.mp3", "file": {"mimeType": "audio/mpeg"}}],
                "@odata.nextLink": "https://graph.example/page2",
            }),
            graph_response({
                "value": [{"id": "B", "name": "b.mp3", "file": {"mimeType": "audio/mpeg"}}],
            }),
        ]

        items = client.list_all_children("F1")

        assert [item.id for item in items] == ["A", "B"]
        assert session.get.call_count == 2
        assert session.get.call_args_list[1].args[0] == "https://graph.example/page2"

    def test_per_call_credentials_override(self, client, session):
        session.get.return_value = graph_response({"value": []})

        client.list_children(credentials=StaticTokenProvider("token-2"))

        assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer token-2"

    def test_token_requested_for_every_call(self, session):
        provider = Mock()
        provider.get_access_token.side_effect = ["first", "second"]
        client = CatalogClient(credentials=provider, session=session)
        session.get.return_value = graph_response({"value": []})

        client.list_children()
        client.list_children()

        headers = [call.kwargs["headers"]["Authorization"] for call in session.get.call_args_list]
        assert headers == ["Bearer first", "Bearer second"]

    def test_missing_value_array(self, client, session):
        session.get.return_value = graph_response({"items": []})
        with pytest.raises(DecodeError):
            client.list_children()

    def test_notebook_does_not_break_listing(self, client, session):
        session.get.return_value = graph_response({"value": [
            {"id": "T1", "name": "song.mp3", "file": {"mimeType": "audio/mpeg"}},
            {"id": "N1", "name": "Notes", "package": {"type": "oneNote"}},
        ]})

        items = client.list_children()

        assert [item.name for item in items] == ["song.mp3", "Notes"]
        assert [item.is_audio for item in items] == [True, False]

    def test_malformed_item(self, client, session):
        session.get.return_value = graph_response({"value": [{"id": "X"}]})
        with pytest.raises(DecodeError):
            client.list_children()


class TestErrorMapping:
    """Test HTTP and transport failures map to drive-player errors"""

    @pytest.mark.parametrize("status, error", [
        (401, AuthError),
        (403, AuthError),
        (404, NotFoundError),
        (500, NetworkError),
        (503, NetworkError),
        (400, DecodeError),
    ])
    def test_status_codes(self, client, session, status, error):
        session.get.return_value = graph_response({"error": {"code": "x"}}, status_code=status)
        with pytest.raises(error) as exc_info:
            client.list_children()
        assert exc_info.value.details["http_status"] == status

    def test_transport_error(self, client, session):
        session.get.side_effect = requests.ConnectionError("connection reset")
        with pytest.raises(NetworkError, match="connection reset"):
            client.list_children()

    def test_non_json_body(self, client, session):
        response = graph_response(None)
        response.json.side_effect = ValueError("Expecting value")
        session.get.return_value = response

        with pytest.raises(DecodeError, match="not valid JSON"):
            client.list_children()

    def test_credential_failure_propagates(self, session):
        provider = Mock()
        provider.get_access_token.side_effect = AuthError("signed out")
        client = CatalogClient(credentials=provider, session=session)

        with pytest.raises(AuthError):
            client.list_children()
        session.get.assert_not_called()


class TestDownload:
    """Test download URL resolution and streaming"""

    def test_get_download_locator(self, client, session):
        session.get.return_value = graph_response({
            "id": "T1",
            "@microsoft.graph.downloadUrl": "https://download.example/T1",
        })

        assert client.get_download_locator("T1") == "https://download.example/T1"
        assert session.get.call_args.args[0] == f"{GRAPH_BASE_URL}/me/drive/items/T1"
        assert session.get.call_args.kwargs["params"] == {
            "$select": "id,@microsoft.graph.downloadUrl"
        }

    def test_missing_locator_is_not_found(self, client, session):
        session.get.return_value = graph_response({"id": "F1"})

        with pytest.raises(NotFoundError) as exc_info:
            client.get_download_locator("F1")
        assert exc_info.value.details["item_id"] == "F1"

    def test_download_to_streams_chunks(self, client, session, temp_dir):
        response = MagicMock()
        response.status_code = 200
        response.__enter__.return_value = response
        response.iter_content.return_value = [b"abc", b"", b"def"]
        session.get.return_value = response

        destination = client.download_to("https://download.example/T1", temp_dir / "song.mp3")

        assert destination.read_bytes() == b"abcdef"
        assert "headers" not in session.get.call_args.kwargs
        assert session.get.call_args.kwargs["stream"] is True

    def test_download_failure_removes_partial_file(self, client, session, temp_dir):
        def chunks():
            yield b"abc"
            raise requests.ConnectionError("dropped")

        response = MagicMock()
        response.status_code = 200
        response.__enter__.return_value = response
        response.iter_content.return_value = chunks()
        session.get.return_value = response
        destination = temp_dir / "song.mp3"

        with pytest.raises(NetworkError):
            client.download_to("https://download.example/T1", destination)
        assert not destination.exists()

    def test_download_http_error(self, client, session, temp_dir):
        response = MagicMock()
        response.status_code = 404
        response.__enter__.return_value = response
        session.get.return_value = response

        with pytest.raises(NotFoundError):
            client.download_to("https://download.example/T1", temp_dir / "song.mp3")
