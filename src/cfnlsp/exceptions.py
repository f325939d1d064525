"""Exception types raised by cfnlsp."""

from __future__ import annotations


class CfnLspError(RuntimeError):
    pass


class FindingPayloadError(CfnLspError, ValueError):
    """The validator's stdout could not be decoded into finding records.

    Raised by the strict decoder only; the diagnostics layer converts it into a
    single synthetic diagnostic so a bad payload never escapes a run.
    """


class SettingsError(CfnLspError):
    """A settings payload did not match the expected shape."""
