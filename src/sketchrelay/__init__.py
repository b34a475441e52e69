""" Python client for submitting compile and upload jobs to a remote worker
    over a publish/subscribe broker, and correlating the worker's two-phase
    reply back to the request that caused it.
"""

# Utility components.

from . import json
from . import log
from . import config

# Submodules used by multiple other components.

from . import protocol
from . import transport

# Primary public-facing interfaces.

from .protocol import Command, ResultPayload, encode_source, decode_source
from .reporter import Reporter, ConsoleReporter, Outcome
from .correlation import CorrelationEngine, Phase, SubscriptionEntry
from .submit import JobSubmitter
from .session import Session

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
