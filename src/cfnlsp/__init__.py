"""cfnlsp package root."""

from cfnlsp.exceptions import CfnLspError, FindingPayloadError, SettingsError

__all__ = ["__version__", "CfnLspError", "FindingPayloadError", "SettingsError"]

__version__ = "0.1.0"
