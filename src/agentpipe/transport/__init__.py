# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

from agentpipe.transport.base import Transport
from agentpipe.transport.subprocess_cli import (
    CLI_PATH_ENV,
    SubprocessTransport,
    find_cli,
)

__all__ = ["CLI_PATH_ENV", "SubprocessTransport", "Transport", "find_cli"]
