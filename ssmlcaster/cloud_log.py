"""
Optional forwarding of log records to Google Cloud Logging.

Enabled only when GOOGLE_CLOUD_PROJECT is set and google-cloud-logging
is importable. Failures of the remote logger never reach the caller:
they are reported once on stderr and otherwise ignored.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

logger = logging.getLogger("ssmlcaster.cloud")

LOG_NAME = "ssmlcaster"
PROJECT_ENV_VAR = "GOOGLE_CLOUD_PROJECT"

_SEVERITIES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARNING",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}


def severity_for(levelno: int) -> str:
    """Cloud Logging severity name for a stdlib level."""
    for level in sorted(_SEVERITIES, reverse=True):
        if levelno >= level:
            return _SEVERITIES[level]
    return "DEFAULT"


class CloudLogHandler(logging.Handler):
    """
    logging.Handler writing text entries to a Cloud Logging logger.

    Records may carry a ``labels`` mapping via ``extra={"labels": {...}}``;
    it is attached to the entry as-is (values stringified).
    """

    def __init__(self, cloud_logger, resource=None, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._cloud_logger = cloud_logger
        self._resource = resource
        self._reported_failure = False
        self.previous_level = logging.NOTSET

    def emit(self, record: logging.LogRecord) -> None:
        try:
            labels = getattr(record, "labels", None)
            kwargs = {"severity": severity_for(record.levelno)}
            if labels:
                kwargs["labels"] = {str(k): str(v) for k, v in labels.items()}
            if self._resource is not None:
                kwargs["resource"] = self._resource
            self._cloud_logger.log_text(self.format(record), **kwargs)
        except Exception as e:
            if not self._reported_failure:
                self._reported_failure = True
                print(f"Error writing to Cloud Logging: {e}", file=sys.stderr)


def create_cloud_handler(project_id: Optional[str] = None) -> Optional[CloudLogHandler]:
    """
    Build a CloudLogHandler, or None when Cloud Logging is unavailable.

    Args:
        project_id: GCP project (default: $GOOGLE_CLOUD_PROJECT).
    """
    project_id = project_id or os.environ.get(PROJECT_ENV_VAR)
    if not project_id:
        logger.info(f"CLOUD_LOG_DISABLED: {PROJECT_ENV_VAR} is not set")
        return None

    try:
        from google.cloud import logging as cloud_logging
        from google.cloud.logging_v2.resource import Resource
    except ImportError:
        print("Warning: google-cloud-logging is not installed. Cloud Logging will be disabled.", file=sys.stderr)
        return None

    try:
        client = cloud_logging.Client(project=project_id)
        cloud_logger = client.logger(LOG_NAME)
    except Exception as e:
        print(f"Error initializing Cloud Logging client: {e}", file=sys.stderr)
        return None

    return CloudLogHandler(cloud_logger, resource=Resource(type="global", labels={}))


def install_cloud_logging(
    target: str = "ssmlcaster",
    project_id: Optional[str] = None,
) -> Optional[CloudLogHandler]:
    """Attach a CloudLogHandler to a logger for one run. Returns it for removal."""
    handler = create_cloud_handler(project_id)
    if handler is None:
        return None
    target_logger = logging.getLogger(target)
    handler.previous_level = target_logger.level
    if target_logger.getEffectiveLevel() > handler.level:
        target_logger.setLevel(handler.level)
    target_logger.addHandler(handler)
    return handler


def uninstall_cloud_logging(handler: Optional[CloudLogHandler], target: str = "ssmlcaster") -> None:
    if handler is None:
        return
    target_logger = logging.getLogger(target)
    target_logger.removeHandler(handler)
    target_logger.setLevel(handler.previous_level)
    handler.close()
