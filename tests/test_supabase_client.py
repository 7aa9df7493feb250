"""Tests for the Supabase REST client."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from languagesgo.supabase.client import SupabaseClient, SupabaseError, build_filter_params

URL = "https://demo.supabase.co"


def _response(status=200, payload=None, text=""):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.reason = "Error"
    if payload is None:
        response.content = text.encode()
        response.text = text
        response.json.side_effect = ValueError("no json")
    else:
        response.content = b"payload"
        response.text = str(payload)
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(session):
    return SupabaseClient(URL + "/", "secret", timeout=5, session=session)


def test_requires_credentials():
    with pytest.raises(SupabaseError, match="Missing credentials"):
        SupabaseClient("", "key")


def test_auth_headers(client, session):
    assert session.headers["apikey"] == "secret"
    assert session.headers["Authorization"] == "Bearer secret"


def test_build_filter_params():
    assert build_filter_params({"id": 5, "status": ("in", ["pending", "processing"]), "artwork_url": ("is", None)}) == {
        "id": "eq.5",
        "status": "in.(pending,processing)",
        "artwork_url": "is.null",
    }


def test_fetch_row(client, session):
    session.request.return_value = _response(payload=[{"id": "42", "word": "tree"}])

    assert client.fetch_row("vocabulary_cards", "42") == {"id": "42", "word": "tree"}
    method, url = session.request.call_args.args
    assert method == "GET"
    assert url == f"{URL}/rest/v1/vocabulary_cards"
    assert session.request.call_args.kwargs["params"] == {"select": "*", "id": "eq.42", "limit": "1"}
    assert session.request.call_args.kwargs["timeout"] == 5


def test_fetch_row_missing(client, session):
    session.request.return_value = _response(payload=[])
    assert client.fetch_row("vocabulary_cards", "42") is None


def test_select_with_or_and_order(client, session):
    session.request.return_value = _response(payload=[])
    client.select("vocabulary_cards", or_="(artwork_url.is.null,artwork_url.eq.)", order="created_at.desc", limit=50)

    assert session.request.call_args.kwargs["params"] == {
        "select": "*",
        "or": "(artwork_url.is.null,artwork_url.eq.)",
        "order": "created_at.desc",
        "limit": "50",
    }


def test_update(client, session):
    session.request.return_value = _response(text="")
    client.update("vocabulary_cards", "42", {"artwork_url": "https://x"})

    assert session.request.call_args.args[0] == "PATCH"
    kwargs = session.request.call_args.kwargs
    assert kwargs["params"] == {"id": "eq.42"}
    assert kwargs["json"] == {"artwork_url": "https://x"}
    assert kwargs["headers"] == {"Prefer": "return=minimal"}


def test_insert(client, session):
    session.request.return_value = _response(text="")
    client.insert("sticker_generation_jobs", {"id": "job-1"})

    assert session.request.call_args.args == ("POST", f"{URL}/rest/v1/sticker_generation_jobs")
    assert session.request.call_args.kwargs["json"] == {"id": "job-1"}


def test_upload(client, session):
    session.request.return_value = _response(payload={"Key": "stickers/es_tree_1.png"})
    assert client.upload("stickers", "es_tree_1.png", b"png", content_type="image/png", cache_control="31536000") == "es_tree_1.png"

    method, url = session.request.call_args.args
    assert method == "POST"
    assert url == f"{URL}/storage/v1/object/stickers/es_tree_1.png"
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] == b"png"
    assert kwargs["headers"] == {
        "Content-Type": "image/png",
        "Cache-Control": "max-age=31536000",
        "x-upsert": "false",
    }


def test_public_url(client):
    assert client.get_public_url("stickers", "es_tree_1.png") == f"{URL}/storage/v1/object/public/stickers/es_tree_1.png"


def test_http_error_carries_message(client, session):
    session.request.return_value = _response(status=409, payload={"message": "The resource already exists"})

    with pytest.raises(SupabaseError) as exc_info:
        client.upload("stickers", "a.png", b"x")
    assert exc_info.value.status_code == 409
    assert "The resource already exists" in str(exc_info.value)
    assert session.request.call_count == 1


def test_network_errors_are_retried(client, session):
    session.request.side_effect = [requests.ConnectionError("reset"), _response(payload=[])]

    with patch("languagesgo.supabase.client.time.sleep") as sleep:
        assert client.select("vocabulary_cards") == []
    sleep.assert_called_once_with(1)


def test_network_errors_give_up(client, session):
    session.request.side_effect = requests.Timeout("slow")

    with patch("languagesgo.supabase.client.time.sleep") as sleep:
        with pytest.raises(SupabaseError, match="after 3 attempts"):
            client.select("vocabulary_cards")
    assert [c.args[0] for c in sleep.call_args_list] == [1, 2]
