"""AI provider boundary.

Adapters run on the agno framework, one model class per provider.
"""

from .schema import SchemaSpec, SchemaType
from .service import GenerateFn, generate_content

__all__ = ["GenerateFn", "SchemaSpec", "SchemaType", "generate_content"]
