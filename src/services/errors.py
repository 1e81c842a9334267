# src/services/errors.py

"""Failure types raised by pipeline collaborators.

None of these escape :class:`~src.services.search_orchestrator.SearchOrchestrator`;
each has a local recovery at the call site that catches it.
"""


class PipelineError(Exception):
    """Base class for recoverable collaborator failures."""


class SourceUnavailable(PipelineError):
    """A source adapter errored or missed its deadline."""


class ModelRequestError(PipelineError):
    """A Gemini request failed or returned an unusable body."""


class RateLimited(PipelineError):
    """The relevance model asked us to slow down (HTTP 429)."""


class BatchScoreUnavailable(PipelineError):
    """A scoring batch failed for a reason other than rate limiting."""


class SummaryUnavailable(PipelineError):
    """The summary model failed, was blocked, or returned nothing."""
