import click


class ConfigurationError(click.UsageError):
    """Bad arguments or options; raised before any sampling or output."""


class InputDataError(click.ClickException):
    """A required file, group or dataset is missing from the input data."""
    exit_code = 3


class NumericDegeneracyError(click.ClickException):
    """A transform needed for anchoring is singular or not finite."""
    exit_code = 4
