import httpx
import pytest

from pdf_relay.relay.models import RelayErrorKind, RelayRequest, StreamedBytes
from pdf_relay.relay.service import PreparedDownload
from pdf_relay.utils_tests.upstream_mock import ChunkStream, RecordingSink, build_service


class TestPrepareDownload:
    @pytest.mark.asyncio
    async def test_prepared_download_headers(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-type": "application/pdf; qs=0.001"},
                content=b"%PDF",
            )

        service = build_service(handler)
        prepared = await service.prepare_download(
            RelayRequest("https://example.com/reports/q3")
        )

        assert isinstance(prepared, PreparedDownload)
        assert prepared.filename == "q3.pdf"
        assert prepared.headers == {
            "Content-Type": "application/pdf; qs=0.001",
            "Content-Disposition": 'attachment; filename="q3.pdf"',
            "Cache-Control": "no-store",
        }
        await prepared.descriptor.aclose()

    @pytest.mark.asyncio
    async def test_content_type_defaults_to_pdf(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"%PDF")

        prepared = await build_service(handler).prepare_download(
            RelayRequest("https://example.com/file")
        )

        assert prepared.content_type == "application/pdf"
        await prepared.descriptor.aclose()

    @pytest.mark.asyncio
    async def test_override_gets_pdf_suffix(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-disposition": 'attachment; filename="upstream.pdf"'},
                content=b"%PDF",
            )

        prepared = await build_service(handler).prepare_download(
            RelayRequest("https://example.com/a.pdf", filename_override="Board: minutes")
        )

        assert prepared.filename == "Board_ minutes.pdf"
        await prepared.descriptor.aclose()

    @pytest.mark.asyncio
    async def test_declared_oversize_is_refused_before_streaming(self):
        body = ChunkStream([b"x" * 64])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-length": "64"}, stream=body)

        outcome = await build_service(handler, byte_ceiling=32).prepare_download(
            RelayRequest("https://example.com/big.pdf")
        )

        assert outcome.kind == RelayErrorKind.PAYLOAD_TOO_LARGE
        assert outcome.detail == "File too large (>32 bytes)"
        assert body.bytes_yielded == 0
        assert body.closed

    @pytest.mark.asyncio
    async def test_blocked_target(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("should not be called")

        outcome = await build_service(handler).prepare_download(
            RelayRequest("http://10.1.2.3/internal.pdf")
        )
        assert outcome.kind == RelayErrorKind.BLOCKED_HOST


class TestRelay:
    @pytest.mark.asyncio
    async def test_relay_streams_into_sink(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=ChunkStream([b"%PDF-", b"1.7"]))

        service = build_service(handler)
        prepared = await service.prepare_download(RelayRequest("https://example.com/a.pdf"))
        sink = RecordingSink()

        outcome = await service.relay(prepared, sink)

        assert outcome == StreamedBytes(total_bytes_sent=8)
        assert sink.data == b"%PDF-1.7"
        assert prepared.descriptor.response.is_closed
