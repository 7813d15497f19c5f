"""
Centralized logging configuration
"""
import os
from pathlib import Path


def _writable_logs_dir(base_dir):
    logs_dir = Path(base_dir) / 'logs'
    try:
        logs_dir.mkdir(exist_ok=True)
    except OSError:
        return None
    return logs_dir if os.access(logs_dir, os.W_OK) else None


def get_logging_config(base_dir, log_format='verbose', level='INFO'):
    """
    Get logging configuration

    ``log_format='json'`` switches every handler to the python-json-logger
    formatter. File handlers are only added when the logs dir is writable.
    """
    formatter = 'json' if log_format == 'json' else 'verbose'
    logs_dir = _writable_logs_dir(base_dir)

    handlers = {
        'console': {
            'level': level,
            'class': 'logging.StreamHandler',
            'formatter': formatter,
        },
    }
    app_handlers = ['console']
    error_handlers = ['console']

    if logs_dir is not None:
        handlers['app_file'] = {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': logs_dir / 'scheduling.log',
            'maxBytes': 1024 * 1024 * 10,  # 10MB
            'backupCount': 5,
            'formatter': formatter,
        }
        handlers['error_file'] = {
            'level': 'ERROR',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': logs_dir / 'errors.log',
            'maxBytes': 1024 * 1024 * 10,  # 10MB
            'backupCount': 5,
            'formatter': formatter,
        }
        app_handlers = ['console', 'app_file']
        error_handlers = ['console', 'error_file']

    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'verbose': {
                'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
                'style': '{',
            },
            'simple': {
                'format': '{levelname} {message}',
                'style': '{',
            },
            'json': {
                '()': 'pythonjsonlogger.jsonlogger.JsonFormatter',
                'format': '%(asctime)s %(name)s %(levelname)s %(message)s',
            },
        },
        'handlers': handlers,
        'loggers': {
            'django': {
                'handlers': error_handlers,
                'level': 'INFO',
                'propagate': False,
            },
            'django.request': {
                'handlers': error_handlers,
                'level': 'ERROR',
                'propagate': False,
            },
            'core': {
                'handlers': app_handlers,
                'level': level,
                'propagate': False,
            },
            'queue_management': {
                'handlers': app_handlers,
                'level': level,
                'propagate': False,
            },
            'appointments': {
                'handlers': app_handlers,
                'level': level,
                'propagate': False,
            },
        },
    }

    return config
