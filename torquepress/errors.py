"""Exception hierarchy shared across torquepress modules."""


class TorquepressError(Exception):
    """Base class for all torquepress errors."""


class NotFoundError(TorquepressError, KeyError):
    """A referenced document (article, job, roadmap item) does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
