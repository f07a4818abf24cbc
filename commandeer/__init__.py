__title__ = 'commandeer'
__license__ = 'MIT'
__version__ = "0.1.0"

import logging

from .commands import *
from .completion import *
from .dispatcher import *
from .faults import *
from .formatter import *
from .metadata import *
from .nodes import *
from .registry import *
from .resolver import *
from .utils import *
from .validation import *
from .values import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
))

version_info = VersionInfo(0, 1, 0, "final", 0)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = (
    "__title__",
    "__license__",
    "__version__",
    "version_info",
)

# Load the exposed API of the runner
__all__ += commands.__all__  # type: ignore[attr-defined]
# Load the exposed API of the completion helpers
__all__ += completion.__all__  # type: ignore[attr-defined]
# Load the exposed API of the dispatcher
__all__ += dispatcher.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the formatter
__all__ += formatter.__all__  # type: ignore[attr-defined]
# Load the exposed API of the metadata extractor
__all__ += metadata.__all__  # type: ignore[attr-defined]
# Load the exposed API of the tree builder
__all__ += nodes.__all__  # type: ignore[attr-defined]
# Load the exposed API of the registry
__all__ += registry.__all__  # type: ignore[attr-defined]
# Load the exposed API of the resolver
__all__ += resolver.__all__  # type: ignore[attr-defined]
# Load the exposed API of the validation layer
__all__ += validation.__all__  # type: ignore[attr-defined]
# Load the exposed API of the value binders
__all__ += values.__all__  # type: ignore[attr-defined]
