"""Unit tests for the receipt storage client retry behaviour"""

import httpx
import pytest
from zurcher_ledger.domain.exceptions import AttachmentStorageError
from zurcher_ledger.domain.models import AttachmentUpload
from zurcher_ledger.infrastructure.clients.storage import AttachmentStorageClient


def make_client(handler, max_retries=3) -> AttachmentStorageClient:
    return AttachmentStorageClient(
        base_url="http://storage.test/",
        folder="fixed_expense_receipts",
        max_retries=max_retries,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
    )


def upload() -> AttachmentUpload:
    return AttachmentUpload(content=b"receipt", filename="receipt.pdf", content_type="application/pdf")


async def test_upload_returns_stored_location():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"url": "https://files.test/abc", "id": "abc"})

    stored = await make_client(handler).upload(upload())

    assert stored.url == "https://files.test/abc"
    assert stored.storage_id == "abc"
    assert seen[0].method == "POST"
    assert seen[0].url == "http://storage.test/attachments"
    assert b"fixed_expense_receipts" in seen[0].content


async def test_upload_retries_server_errors():
    responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"url": "u", "id": 7})])

    stored = await make_client(lambda request: next(responses)).upload(upload())

    assert stored.storage_id == "7"


async def test_upload_gives_up_after_max_retries():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(AttachmentStorageError):
        await make_client(handler, max_retries=3).upload(upload())

    assert len(calls) == 3


async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(413)

    with pytest.raises(AttachmentStorageError):
        await make_client(handler).upload(upload())

    assert len(calls) == 1


async def test_network_errors_are_retried():
    attempts = {"count": 0}

    def handler(request):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"url": "u", "id": "x"})

    stored = await make_client(handler).upload(upload())

    assert stored.storage_id == "x"
    assert attempts["count"] == 2


async def test_invalid_upload_response():
    with pytest.raises(AttachmentStorageError):
        await make_client(lambda request: httpx.Response(200, json={"unexpected": True})).upload(upload())


async def test_delete_treats_missing_file_as_deleted():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(404)

    await make_client(handler).delete("abc")

    assert seen[0].method == "DELETE"
    assert seen[0].url == "http://storage.test/attachments/abc"
