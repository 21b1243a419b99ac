"""ORM models exposed at package level.

Importing the package registers every table on ``Base.metadata``, which
``init_models`` relies on.
"""

from .base import Base  # noqa: F401
from .transformation_logs import TransformationLog  # noqa: F401
