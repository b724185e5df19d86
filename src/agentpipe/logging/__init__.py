# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

from agentpipe.logging.decorator import Loggable, log_method
from agentpipe.logging.transcript import Transcript, read_transcript

__all__ = ["Loggable", "Transcript", "log_method", "read_transcript"]
