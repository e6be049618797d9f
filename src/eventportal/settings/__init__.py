from .base import *  # noqa: F403
from .celery import *  # noqa: F403
from .email import *  # noqa: F403
from .ninja import *  # noqa: F403
from .observability import *  # noqa: F403
from .registrations import *  # noqa: F403
