""" Topic grammar for the job protocol. Every topic seen by a client is one
    of three shapes:

    ``{command}/{request_id}``
        A job submission, published by the client.

    ``response/{command}/{request_id}``
        The worker's acknowledgment of a submission, naming a job id.

    ``result/{job_id}``
        The terminal outcome of a job.

    :func:`parse` classifies a topic string before any payload decoding is
    attempted; anything that does not fit one of the shapes above is an
    :class:`UnknownTopic`.
"""

from __future__ import annotations

from typing import NamedTuple, Union

from .fields import Command, RESPONSE, RESULT, SEPARATOR


class CommandTopic(NamedTuple):
    command: Command
    request_id: str

    def __str__(self) -> str:
        return SEPARATOR.join((self.command.value, self.request_id))


class ReplyTopic(NamedTuple):
    command: Command
    request_id: str

    def __str__(self) -> str:
        return SEPARATOR.join((RESPONSE, self.command.value, self.request_id))


class ResultTopic(NamedTuple):
    job_id: str

    def __str__(self) -> str:
        return SEPARATOR.join((RESULT, self.job_id))


class UnknownTopic(NamedTuple):
    topic: str

    def __str__(self) -> str:
        return self.topic


Topic = Union[CommandTopic, ReplyTopic, ResultTopic, UnknownTopic]


def command(command, request_id: str) -> str:
    return str(CommandTopic(Command(command), request_id))


def reply(command, request_id: str) -> str:
    return str(ReplyTopic(Command(command), request_id))


def result(job_id: str) -> str:
    return str(ResultTopic(job_id))


def _command(name: str):
    try:
        return Command(name)
    except ValueError:
        return None


def parse(topic: str) -> Topic:
    """ Classify a *topic* string. Identifiers must be non-empty; a job id
        is everything after the ``result/`` prefix, and may itself contain
        separators.
    """

    head, sep, rest = topic.partition(SEPARATOR)

    if sep == '' or rest == '':
        return UnknownTopic(topic)

    if head == RESULT:
        return ResultTopic(rest)

    if head == RESPONSE:
        name, sep, request_id = rest.partition(SEPARATOR)
        kind = _command(name)
        if kind is None or request_id == '' or SEPARATOR in request_id:
            return UnknownTopic(topic)
        return ReplyTopic(kind, request_id)

    kind = _command(head)
    if kind is None or SEPARATOR in rest:
        return UnknownTopic(topic)

    return CommandTopic(kind, rest)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
