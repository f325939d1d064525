"""Cheap, regex-only classification of CloudFormation templates.

Runs on every open and save, so it never parses the document. Both YAML and
JSON templates are recognized. A false negative only skips validation; a
false positive costs one cfn-lint run that fails fast.
"""

from __future__ import annotations

import re

FORMAT_VERSION_REASON = "format-version"
RESOURCES_REASON = "resources"

_FORMAT_VERSION_RE = re.compile(r'"?AWSTemplateFormatVersion"?\s*', re.IGNORECASE)
# Top level: column 0 for YAML, any indentation for a quoted JSON key.
_RESOURCES_RE = re.compile(r'^(?:Resources|\s*"Resources")\s*:', re.MULTILINE)
_RESOURCE_TYPE_RE = re.compile(r'"?Type"?\s*:\s*["\']?(?:AWS|Custom)::')
# Serverless Framework files share the Resources/Type shape.
_SERVERLESS_RESOURCES_RE = re.compile(r"^resources:", re.MULTILINE)
_SERVERLESS_PROVIDER_RE = re.compile(r"^provider:", re.MULTILINE)


def is_serverless(text: str) -> bool:
    return bool(
        _SERVERLESS_RESOURCES_RE.search(text) and _SERVERLESS_PROVIDER_RE.search(text)
    )


def detection_reason(text: str) -> str | None:
    if _FORMAT_VERSION_RE.search(text):
        return FORMAT_VERSION_REASON
    if _RESOURCES_RE.search(text) and _RESOURCE_TYPE_RE.search(text):
        if not is_serverless(text):
            return RESOURCES_REASON
    return None


def is_cloudformation(text: str) -> bool:
    return detection_reason(text) is not None
