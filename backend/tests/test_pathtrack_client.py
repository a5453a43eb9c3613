"""Tests for the REST client of the upstream analysis API."""
import asyncio
import json

import pytest
import requests

from clients.pathtrack import PathtrackClient, SimilarityQuery, parse_jsonl_records
from utils.errors import AuthError, DashboardError, MalformedResponse, TransientFetchError


def make_response(status_code=200, body=b"{}"):
    response = requests.Response()
    response.status_code = status_code
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode()
    response.encoding = "utf-8"
    return response


class ScriptedSession(requests.Session):
    """Session returning a queued response (or raising) instead of touching the network."""

    def __init__(self, response=None, error=None):
        super().__init__()
        self.response = response if response is not None else make_response()
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_client(session):
    return PathtrackClient("https://api.example.org/api/v1/", api_key="secret", timeout=5, session=session)


def test_parse_jsonl_keeps_only_records():
    text = "\n".join([
        json.dumps({"type": "meta", "count": 2}),
        json.dumps({"type": "record", "sequence_hash": "a"}),
        "",
        "{not json",
        json.dumps({"type": "record", "sequence_hash": "b"}),
        json.dumps(["type", "record"]),
    ])
    records = parse_jsonl_records(text)
    assert [r["sequence_hash"] for r in records] == ["a", "b"]


def test_api_key_header_and_urls():
    session = ScriptedSession(make_response(body={"status": "queued"}))
    client = make_client(session)

    assert client.check_job_status_sync("job-7") == {"status": "queued"}

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://api.example.org/api/v1/pathtrack/jobs/job-7"
    assert kwargs["timeout"] == 5
    assert session.headers["X-API-Key"] == "secret"


def test_similar_request_sends_query_body():
    session = ScriptedSession(make_response(body={"result": []}))
    client = make_client(session)

    client.get_similar_sequences_sync("job-7", SimilarityQuery(n_results=5))

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert kwargs["params"] == {"job_id": "job-7"}
    assert kwargs["json"]["n_results"] == 5
    assert kwargs["json"]["include_unknown_dates"] is True


def test_bulk_fetch_parses_json_lines():
    body = "\n".join(json.dumps({"type": "record", "sequence_hash": str(i)}) for i in range(3)).encode()
    session = ScriptedSession(make_response(body=body))
    records = make_client(session).fetch_all_sequences_sync("DNABERT-S")

    assert len(records) == 3
    assert session.calls[0][2]["params"] == {"embedding_model": "DNABERT-S", "reduced": "true"}


def test_upload_requires_job_id():
    session = ScriptedSession(make_response(body={"message": "ok"}))
    with pytest.raises(MalformedResponse):
        make_client(session).upload_sequence_sync(b">seq\nACGT\n", "seq.fasta", "DNABERT-S")


@pytest.mark.parametrize("status_code,error_type", [
    (401, AuthError),
    (403, AuthError),
    (429, TransientFetchError),
    (500, TransientFetchError),
    (503, TransientFetchError),
    (404, DashboardError),
])
def test_http_status_mapping(status_code, error_type):
    session = ScriptedSession(make_response(status_code, b"nope"))
    with pytest.raises(error_type) as excinfo:
        make_client(session).check_job_status_sync("job-7")
    assert excinfo.value.status_code == status_code


def test_connection_errors_are_transient():
    session = ScriptedSession(error=requests.ConnectionError("refused"))
    with pytest.raises(TransientFetchError):
        make_client(session).check_job_status_sync("job-7")


def test_non_json_and_non_object_bodies_are_malformed():
    with pytest.raises(MalformedResponse):
        make_client(ScriptedSession(make_response(body=b"<html>"))).check_job_status_sync("job-7")
    with pytest.raises(MalformedResponse):
        make_client(ScriptedSession(make_response(body=[1, 2]))).check_job_status_sync("job-7")


def test_async_interface_runs_sync_call():
    session = ScriptedSession(make_response(body={"result": {"coordinates": [1, 2]}}))
    payload = asyncio.run(make_client(session).get_umap_projection("job-7"))
    assert payload["result"]["coordinates"] == [1, 2]


def test_similarity_query_validation():
    with pytest.raises(ValueError):
        SimilarityQuery(n_results=0)
