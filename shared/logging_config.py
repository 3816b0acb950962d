"""Centralized logging configuration with correlation and workflow ID support."""

import logging
import sys
from contextvars import ContextVar
from pythonjsonlogger import jsonlogger

correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='')
workflow_id_var: ContextVar[str] = ContextVar('workflow_id', default='')

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ContextFilter(logging.Filter):
    """Adds correlation_id and workflow_id to all log records"""

    def filter(self, record):
        record.correlation_id = correlation_id_var.get('')
        record.workflow_id = workflow_id_var.get('')
        return True


def setup_logging(service_name: str, level: int = logging.INFO) -> None:
    """Sets up JSON logging with correlation ID support"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers = []

    json_handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(correlation_id)s %(workflow_id)s %(message)s',
        rename_fields={
            'asctime': 'timestamp',
            'name': 'logger',
            'levelname': 'level',
        }
    )

    json_handler.setFormatter(formatter)
    json_handler.addFilter(ContextFilter())
    logger.addHandler(json_handler)
    logging.info(f"{service_name} logging configured with JSON format and correlation ID support")


def resolve_log_level(name: str) -> int:
    return LOG_LEVELS.get((name or "").lower(), logging.INFO)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get('')


def set_workflow_id(workflow_id: str) -> None:
    workflow_id_var.set(workflow_id)
