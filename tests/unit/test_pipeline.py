"""
Unit tests for the request pipeline.
"""

import gzip
import json
import logging

import pytest

from homepage.content.assets import AssetReader
from homepage.content.store import ContentStore
from homepage.http.request import RequestParser
from homepage.http.status_codes import HTTPStatus
from homepage.pipeline import (
    STAGES,
    CacheDecision,
    Continue,
    RequestContext,
    RequestPipeline,
    Respond,
)
from homepage.pipeline.guards import (
    MAX_URI_LENGTH,
    cache_guard,
    lookup_guard,
    method_guard,
    uri_length_guard,
)


class TestMethodGuard:

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD", "get"])
    def test_non_get_is_405(self, pipeline, make_request, method):
        response = pipeline.handle(make_request("/", method=method))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.body == b"Method not allowed."
        assert response.headers["Allow"] == "GET"

    def test_405_regardless_of_uri(self, pipeline, make_request):
        for target in ("/", "/missing", "/" + "x" * 100):
            response = pipeline.handle(make_request(target, method="POST"))
            assert response.status == HTTPStatus.METHOD_NOT_ALLOWED

    def test_get_continues(self, store, reader, make_request):
        ctx = RequestContext(make_request("/"), store, reader)
        assert method_guard(ctx) == Continue(ctx)


class TestURILengthGuard:

    def test_long_target_is_414(self, pipeline, make_request):
        response = pipeline.handle(make_request("/" + "a" * MAX_URI_LENGTH))

        assert response.status == HTTPStatus.URI_TOO_LONG
        assert response.body == b"URI too long!"

    def test_boundary(self, store, reader, make_request):
        exact = make_request("/" + "a" * (MAX_URI_LENGTH - 1))
        over = make_request("/" + "a" * MAX_URI_LENGTH)

        assert isinstance(uri_length_guard(RequestContext(exact, store, reader)), Continue)
        assert isinstance(uri_length_guard(RequestContext(over, store, reader)), Respond)

    def test_414_even_for_existing_page(self, tmp_path, make_request):
        long_uri = "/" + "p" * 80
        store = ContentStore.from_json(json.dumps([
            {"uri": long_uri, "text": "unreachable", "contentType": "plain"},
        ]))
        pipeline = RequestPipeline(store, AssetReader(tmp_path))

        response = pipeline.handle(make_request(long_uri))

        assert response.status == HTTPStatus.URI_TOO_LONG

    def test_counts_characters_not_bytes(self, store, reader, make_request):
        target = "/" + "é" * (MAX_URI_LENGTH - 1)
        ctx = RequestContext(make_request(target), store, reader)
        assert isinstance(uri_length_guard(ctx), Continue)


class TestParsedTargets:
    """Requests parsed from wire bytes, not built by hand."""

    def test_multibyte_target_within_limit(self, pipeline):
        raw = ("GET /" + "é" * 40 + " HTTP/1.1\r\nHost: x\r\n\r\n").encode("utf-8")
        request = RequestParser().parse(raw)

        response = pipeline.handle(request)

        assert len(request.target) == 41
        assert response.status == HTTPStatus.NOT_FOUND

    def test_multibyte_target_over_limit(self, pipeline):
        raw = ("GET /" + "é" * MAX_URI_LENGTH + " HTTP/1.1\r\n\r\n").encode("utf-8")

        response = pipeline.handle(RequestParser().parse(raw))

        assert response.status == HTTPStatus.URI_TOO_LONG

    def test_non_ascii_page_is_found(self, pipeline):
        raw = "GET /über HTTP/1.1\r\nHost: x\r\n\r\n".encode("utf-8")

        response = pipeline.handle(RequestParser().parse(raw))

        assert response.status == HTTPStatus.OK
        assert response.body == b"umlaut"

    def test_repeated_if_none_match_uses_first(self, pipeline):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"If-None-Match: v1\r\n"
            b"If-None-Match: v2\r\n"
            b"\r\n"
        )

        response = pipeline.handle(RequestParser().parse(raw))

        assert response.status == HTTPStatus.NOT_MODIFIED


class TestLookupGuard:

    def test_unknown_uri_is_404(self, pipeline, make_request):
        response = pipeline.handle(make_request("/missing"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"Page not found."
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_query_string_is_part_of_the_key(self, pipeline, make_request):
        response = pipeline.handle(make_request("/about?lang=en"))
        assert response.status == HTTPStatus.NOT_FOUND

    def test_found_page_is_attached(self, store, reader, make_request):
        outcome = lookup_guard(RequestContext(make_request("/about"), store, reader))

        assert isinstance(outcome, Continue)
        assert outcome.context.page is store.get("/about")


class TestCacheGuard:

    def test_matching_etag_is_304(self, pipeline, make_request):
        response = pipeline.handle(make_request("/about", headers={"If-None-Match": "a7"}))

        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.body == b""
        assert response.headers["ETag"] == "a7"
        assert "Content-Type" not in response.headers
        assert "Content-Length" not in response.headers

    def test_other_etag_gets_full_body(self, pipeline, make_request, content_dir):
        response = pipeline.handle(make_request("/about", headers={"If-None-Match": "old"}))

        assert response.status == HTTPStatus.OK
        assert response.body == (content_dir / "about.html").read_bytes()
        assert response.headers["ETag"] == "a7"
        assert response.headers["Cache-Control"] == "public"

    def test_no_header_gets_caching_headers(self, pipeline, make_request):
        response = pipeline.handle(make_request("/about"))

        assert response.headers["ETag"] == "a7"
        assert response.headers["Cache-Control"] == "public"

    def test_page_without_etag_is_uncached(self, pipeline, make_request):
        response = pipeline.handle(make_request("/notes", headers={"If-None-Match": "x"}))

        assert response.status == HTTPStatus.OK
        assert "ETag" not in response.headers
        assert "Cache-Control" not in response.headers

    def test_decision_recorded_in_context(self, store, reader, make_request):
        ctx = RequestContext(make_request("/about"), store, reader, page=store.get("/about"))
        outcome = cache_guard(ctx)

        assert outcome.context.cache is CacheDecision.CACHEABLE


class TestEncoding:

    def test_gzip_when_accepted(self, pipeline, make_request, content_dir):
        response = pipeline.handle(make_request("/about", headers={"Accept-Encoding": "gzip, br"}))

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Encoding"] == "gzip"
        assert response.body == (content_dir / "about.html.gz").read_bytes()
        assert gzip.decompress(response.body) == (content_dir / "about.html").read_bytes()

    def test_identity_without_gzip(self, pipeline, make_request, content_dir):
        response = pipeline.handle(make_request("/about", headers={"Accept-Encoding": "br"}))

        assert "Content-Encoding" not in response.headers
        assert response.body == (content_dir / "about.html").read_bytes()

    def test_inline_ignores_accept_encoding(self, pipeline, make_request):
        response = pipeline.handle(make_request("/", headers={"Accept-Encoding": "gzip"}))

        assert "Content-Encoding" not in response.headers
        assert response.body == b"hello"

    def test_missing_asset_is_500(self, pipeline, make_request):
        response = pipeline.handle(make_request("/broken"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"Internal server error."

    def test_missing_asset_logged_at_error(self, pipeline, make_request, caplog):
        with caplog.at_level(logging.ERROR, logger="homepage.pipeline.guards"):
            pipeline.handle(make_request("/broken"))

        assert any(
            record.levelno == logging.ERROR and "missing.html" in record.getMessage()
            for record in caplog.records
        )

    def test_next_request_after_500_succeeds(self, pipeline, make_request):
        assert pipeline.handle(make_request("/broken")).status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert pipeline.handle(make_request("/")).status == HTTPStatus.OK


class TestAssembly:

    def test_scenario_inline_page(self, make_request, tmp_path):
        store = ContentStore.from_json(
            '[{"uri":"/", "text":"hello", "etag":"v1", "contentType":"plain"}]'
        )
        pipeline = RequestPipeline(store, AssetReader(tmp_path))

        response = pipeline.handle(make_request("/"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"hello"
        assert response.headers["ETag"] == "v1"
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

        cached = pipeline.handle(make_request("/", headers={"If-None-Match": "v1"}))
        assert cached.status == HTTPStatus.NOT_MODIFIED
        assert cached.body == b""

        assert pipeline.handle(make_request("/missing")).status == HTTPStatus.NOT_FOUND

    def test_markdown_content_type(self, pipeline, make_request):
        response = pipeline.handle(make_request("/notes"))
        assert response.headers["Content-Type"] == "text/markdown; charset=utf-8"

    def test_script_src_policy(self, pipeline, make_request):
        response = pipeline.handle(make_request("/app"))

        assert response.headers["Content-Security-Policy"] == "script-src 'self'"
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"

    def test_security_headers_on_every_response(self, pipeline, make_request):
        for request in (
            make_request("/"),
            make_request("/missing"),
            make_request("/", method="POST"),
            make_request("/about", headers={"If-None-Match": "a7"}),
        ):
            response = pipeline.handle(request)
            assert response.headers["X-Content-Type-Options"] == "'nosniff'"
            assert "Content-Security-Policy" in response.headers

    @pytest.mark.parametrize("target,headers", [
        ("/", {}),
        ("/about", {"Accept-Encoding": "gzip"}),
        ("/about", {}),
        ("/notes", {}),
        ("/missing", {}),
        ("/broken", {}),
    ])
    def test_content_length_equals_body(self, pipeline, make_request, target, headers):
        response = pipeline.handle(make_request(target, headers=headers))
        assert response.headers["Content-Length"] == str(len(response.body))

    def test_idempotent(self, pipeline, make_request):
        request = make_request("/about", headers={"Accept-Encoding": "gzip"})
        assert pipeline.handle(request) == pipeline.handle(request)

    def test_http10_keep_alive_mirrored(self, pipeline, make_request):
        request = make_request("/", version="HTTP/1.0", headers={"Connection": "keep-alive"})
        response = pipeline.handle(request)

        assert response.headers["Connection"] == "keep-alive"
        assert response.version == "HTTP/1.0"


class TestRequestPipeline:

    def test_default_stage_order(self):
        assert [stage.__name__ for stage in STAGES] == [
            "method_guard",
            "uri_length_guard",
            "lookup_guard",
            "cache_guard",
            "encoding_stage",
            "assembly_stage",
        ]

    def test_needs_stages(self, store, reader):
        with pytest.raises(ValueError):
            RequestPipeline(store, reader, stages=())

    def test_no_stage_answering_is_an_error(self, store, reader, make_request):
        pipeline = RequestPipeline(store, reader, stages=(method_guard,))
        with pytest.raises(RuntimeError):
            pipeline.handle(make_request("/"))
