"""Errors raised by pipeline jobs."""


class JobInputError(LookupError):
    """A job was started for a record that does not exist."""

    pass


class BrandNotFoundError(JobInputError):
    pass


class PromptNotFoundError(JobInputError):
    pass


class SerpNotConfiguredError(RuntimeError):
    """No SERP client has credentials configured."""

    pass
