"""
=============================================================================
PIPELINE STAGES
=============================================================================

Each stage takes a RequestContext and returns one of two outcomes:

    Respond(response)   the request is answered; no later stage runs
    Continue(context)   pass a (possibly enriched) context to the next stage

    ┌────────────┐   ┌────────────┐   ┌────────────┐   ┌────────────┐
    │  method    │──▶│  length    │──▶│  lookup    │──▶│  cache     │──▶ ...
    └─────┬──────┘   └─────┬──────┘   └─────┬──────┘   └─────┬──────┘
          ▼                ▼                ▼                ▼
         405              414              404              304

    ... ──▶┌────────────┐   ┌────────────┐
           │  encoding  │──▶│  assembly  │──▶ 200
           └─────┬──────┘   └────────────┘
                 ▼
                500

Stages are plain functions with no side effects beyond logging. The
context is frozen; a stage that learns something returns a copy with
the new field filled in (dataclasses.replace).

=============================================================================
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Union

from ..content.assets import AssetReader
from ..content.store import ContentEncoding, ContentStore, Page
from ..errors import ContentReadError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, assemble, not_modified, text_response
from ..http.status_codes import HTTPStatus
from .caching import CacheDecision, validate_cache
from .negotiation import accepted_encodings, negotiate


logger = logging.getLogger(__name__)

ALLOWED_METHOD = "GET"
MAX_URI_LENGTH = 64


@dataclass(frozen=True)
class RequestContext:
    """
    Everything known about a request at some point in the pipeline.

    The first three fields are set by the caller; the rest are filled in
    by the stages that compute them.
    """

    request: HTTPRequest
    store: ContentStore
    reader: AssetReader
    page: Optional[Page] = None
    cache: Optional[CacheDecision] = None
    encoding: Optional[ContentEncoding] = None
    body: Optional[bytes] = None


@dataclass(frozen=True)
class Respond:
    response: HTTPResponse


@dataclass(frozen=True)
class Continue:
    context: RequestContext


Outcome = Union[Respond, Continue]
Stage = Callable[[RequestContext], Outcome]


def method_guard(ctx: RequestContext) -> Outcome:
    """Only GET is served."""
    request = ctx.request
    if request.method != ALLOWED_METHOD:
        logger.info(f"Rejecting method {request.method} for {request.target}")
        return Respond(text_response(
            request,
            HTTPStatus.METHOD_NOT_ALLOWED,
            "Method not allowed.",
            extra_headers={"Allow": ALLOWED_METHOD},
        ))
    return Continue(ctx)


def uri_length_guard(ctx: RequestContext) -> Outcome:
    """Targets longer than MAX_URI_LENGTH characters get a 414."""
    request = ctx.request
    if len(request.target) > MAX_URI_LENGTH:
        logger.info(f"Rejecting target of {len(request.target)} characters")
        return Respond(text_response(
            request, HTTPStatus.URI_TOO_LONG, "URI too long!"
        ))
    return Continue(ctx)


def lookup_guard(ctx: RequestContext) -> Outcome:
    page = ctx.store.get(ctx.request.target)
    if page is None:
        logger.info(f"No page for {ctx.request.target}")
        return Respond(text_response(
            ctx.request, HTTPStatus.NOT_FOUND, "Page not found."
        ))
    logger.debug(f"Found page {page.uri} ({page.content_type.value})")
    return Continue(replace(ctx, page=page))


def cache_guard(ctx: RequestContext) -> Outcome:
    """Answer 304 when the client already holds the current version."""
    page = ctx.page
    decision = validate_cache(page.etag, ctx.request.if_none_match)

    if decision is CacheDecision.NOT_MODIFIED:
        logger.info(f"{page.uri} not modified (etag {page.etag})")
        return Respond(not_modified(ctx.request, page.etag, page.script_src))

    logger.debug(f"Cache decision for {page.uri}: {decision.value}")
    return Continue(replace(ctx, cache=decision))


def encoding_stage(ctx: RequestContext) -> Outcome:
    """
    Pick the representation and read its bytes.

    A failed read answers 500 instead of propagating: one broken asset
    must not take the other pages down with it.
    """
    accepted = accepted_encodings(ctx.request.accept_encoding)
    try:
        encoding, body = negotiate(accepted, ctx.page.source, ctx.reader)
    except ContentReadError as e:
        logger.error(f"Failed to serve {ctx.page.uri}: {e}")
        return Respond(text_response(
            ctx.request, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error."
        ))
    return Continue(replace(ctx, encoding=encoding, body=body))


def assembly_stage(ctx: RequestContext) -> Outcome:
    """Final stage: always responds with the page."""
    page = ctx.page
    etag = page.etag if ctx.cache is CacheDecision.CACHEABLE else None
    return Respond(assemble(
        ctx.request,
        HTTPStatus.OK,
        content_type=page.content_type,
        body=ctx.body,
        content_encoding=ctx.encoding,
        script_src=page.script_src,
        etag=etag,
    ))
