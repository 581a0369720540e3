"""
The request pipeline: run the stages in order until one responds.
"""

import logging
from typing import Sequence

from ..content.assets import AssetReader
from ..content.store import ContentStore
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .guards import (
    Continue,
    RequestContext,
    Respond,
    Stage,
    assembly_stage,
    cache_guard,
    encoding_stage,
    lookup_guard,
    method_guard,
    uri_length_guard,
)


logger = logging.getLogger(__name__)

STAGES: Sequence[Stage] = (
    method_guard,
    uri_length_guard,
    lookup_guard,
    cache_guard,
    encoding_stage,
    assembly_stage,
)


class RequestPipeline:
    """
    Maps one HTTPRequest to exactly one HTTPResponse.

    Holds no per-request state, so one instance is shared by every
    worker thread.

    Example:
        pipeline = RequestPipeline(store, AssetReader(content_dir))
        response = pipeline.handle(request)
    """

    def __init__(
        self,
        store: ContentStore,
        reader: AssetReader,
        stages: Sequence[Stage] = STAGES,
    ):
        if not stages:
            raise ValueError("pipeline needs at least one stage")
        self.store = store
        self.reader = reader
        self.stages = tuple(stages)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        ctx = RequestContext(request=request, store=self.store, reader=self.reader)

        for stage in self.stages:
            outcome = stage(ctx)
            if isinstance(outcome, Respond):
                logger.debug(
                    f"{stage.__name__} answered {request.method} {request.target} "
                    f"with {outcome.response.status}"
                )
                return outcome.response
            if not isinstance(outcome, Continue):
                raise TypeError(
                    f"stage {stage.__name__} returned {type(outcome).__name__}"
                )
            ctx = outcome.context

        raise RuntimeError(f"no stage answered {request.method} {request.target}")
