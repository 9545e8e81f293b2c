"""Template resolution and rendering.

Quick usage::

    from manifestgen.templating import BatchRenderer, RenderRequest

    renderer = BatchRenderer("templates", max_concurrency=8)
    result = await renderer.render_batch([
        RenderRequest("dotnet/Domain/Entity", {"name": "Order"}, Path("out/Order.cs")),
    ])
    print(result.succeeded, result.failed)
"""

from manifestgen.templating.batch import (
    BatchError,
    BatchRenderer,
    BatchRenderResult,
    RenderOutcome,
    RenderRequest,
)
from manifestgen.templating.engine import TemplateCache, TemplateEngine
from manifestgen.templating.errors import (
    TemplateError,
    TemplateNotFoundError,
    TemplateReadError,
    TemplateRenderError,
    TemplateWriteError,
)
from manifestgen.templating.resolver import TemplateResolver
from manifestgen.templating.strategies import (
    LanguageConventions,
    LanguageStrategy,
    LanguageStrategyRegistry,
    default_registry,
)

__all__ = [
    "BatchError",
    "BatchRenderer",
    "BatchRenderResult",
    "LanguageConventions",
    "LanguageStrategy",
    "LanguageStrategyRegistry",
    "RenderOutcome",
    "RenderRequest",
    "TemplateCache",
    "TemplateEngine",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateReadError",
    "TemplateRenderError",
    "TemplateResolver",
    "TemplateWriteError",
    "default_registry",
]
