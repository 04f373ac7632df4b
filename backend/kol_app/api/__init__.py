"""
API Routers package.

Re-export the router modules so `kol_app.main` can import and register them.
"""

from . import analysis  # noqa: F401
from . import collaborators  # noqa: F401
from . import projects  # noqa: F401
from . import reports  # noqa: F401
from . import tasks  # noqa: F401
