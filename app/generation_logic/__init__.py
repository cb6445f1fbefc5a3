"""Generation logic package.

This package groups the pieces of the research document workflow that sit
between intelligence gathering and the HTTP layer: the append-only pipeline
context, generation stages and their fixed research plan, final assembly and
the background job runner. Keeping them here allows `app/api/routes.py` to stay
minimal and focused on HTTP routing.
"""

from .context import ContextEntry  # noqa: F401
from .context import PipelineContext  # noqa: F401
from .context import truncate  # noqa: F401
