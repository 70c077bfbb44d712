"""
Service context for log lines.

Identifies which worker emitted a line: `<service>@<env>:<instance>`.
"""

import os
from functools import lru_cache
import socket


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'settlement')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # Container orchestrators expose the pod/task name as HOSTNAME
    instance = os.getenv('HOSTNAME') or socket.gethostname() or 'local'
    return f'{service_name}@{deploy_env}:{instance[:12]}-{os.getpid()}'
