""" The :class:`Reporter` is the collaborator that receives everything a user
    would want to see: connection status, submission progress, and the one
    terminal outcome of each request. A graphical front end implements this
    interface; :class:`ConsoleReporter` is the implementation used by the
    command line tool.
"""

from __future__ import annotations

import enum
import sys
import threading
from typing import Dict, Optional, TextIO

from . import json
from .protocol.message import ResultPayload


class Outcome(str, enum.Enum):
    RESULT = "result"
    TIMEOUT = "timeout"
    ABANDONED = "abandoned"


class Reporter:
    """ Base class; every hook is a no-op. Subclasses override the hooks
        they care about. Hooks may be invoked from the transport's thread.
    """

    def on_status(self, message: str) -> None:
        """Connection status changed, e.g. 'Connected'."""

    def on_submitted(self, request_id: str, command: str) -> None:
        """A job was handed to the transport; show a progress indicator."""

    def on_result(self, request_id: str, result: ResultPayload) -> None:
        """Terminal: the worker reported an outcome."""

    def on_timeout(self, request_id: str) -> None:
        """Terminal: no outcome arrived within the requested timeout."""

    def on_abandoned(self, request_id: str, reason: str) -> None:
        """Terminal: the connection went away with the request in flight."""


class ConsoleReporter(Reporter):
    """ Print status and results to a stream, and let a caller block until
        a given request has terminated.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        if stream is None:
            stream = sys.stdout

        self.stream = stream
        self.outcomes: Dict[str, Outcome] = dict()
        self.results: Dict[str, ResultPayload] = dict()
        self._done: Dict[str, threading.Event] = dict()
        self._lock = threading.Lock()


    def _event(self, request_id):
        with self._lock:
            try:
                event = self._done[request_id]
            except KeyError:
                event = threading.Event()
                self._done[request_id] = event
            return event


    def _finish(self, request_id, outcome):
        self.outcomes[request_id] = outcome
        self._event(request_id).set()


    def wait(self, request_id: str, timeout: Optional[float] = None) -> Optional[Outcome]:
        """ Block until *request_id* terminates, returning its outcome, or
            None if *timeout* seconds pass first.
        """

        self._event(request_id).wait(timeout)
        return self.outcomes.get(request_id)


    def write(self, line):
        self.stream.write(line + '\n')
        self.stream.flush()


    def on_status(self, message):
        self.write(message)


    def on_submitted(self, request_id, command):
        self.write('Submitted %s request %s' % (command, request_id))


    def on_result(self, request_id, result):
        self.results[request_id] = result

        if result.type == 'success':
            self.write('Exit code: ' + str(result.exit_code))
            self.write('Stdout: ' + str(result.stdout))
            self.write('Stderr: ' + str(result.stderr))
            self.write('Errors: ' + json.dumps(result.errors).decode())
        else:
            self.write('Fail: ' + json.dumps(result).decode())

        self._finish(request_id, Outcome.RESULT)


    def on_timeout(self, request_id):
        self.write('Timed out: ' + request_id)
        self._finish(request_id, Outcome.TIMEOUT)


    def on_abandoned(self, request_id, reason):
        self.write('Abandoned: %s (%s)' % (request_id, reason))
        self._finish(request_id, Outcome.ABANDONED)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
