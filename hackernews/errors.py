"""Exceptions raised by resolvers.

graphql-core turns any exception raised in a resolver into an entry of the response's 'errors'
list, using str(exception) as the message, so these only need to carry a message.
"""


class HackernewsError(Exception):
    pass


class AuthenticationError(HackernewsError):
    """Missing, invalid or expired token, or bad credentials."""


class ConflictError(HackernewsError):
    """The write would duplicate something that must be unique."""


class NotFoundError(HackernewsError):
    pass


class InvalidArgumentError(HackernewsError):
    pass
