"""
Result envelope for public service operations.

Public operations never raise: business failures come back as
``{'success': False, 'error': {'code', 'message', 'details'}}`` and any other
failure is logged and reported as ``SYSTEM_ERROR``.
"""

import functools
import logging
from typing import Dict, Any

from ..exceptions import BusinessException

logger = logging.getLogger(__name__)

SYSTEM_ERROR = "SYSTEM_ERROR"


def success(**data) -> Dict[str, Any]:
    return {'success': True, **data}


def failure(code: str, message: str, details: Dict[str, Any] = None) -> Dict[str, Any]:
    return {
        'success': False,
        'error': {
            'code': code,
            'message': message,
            'details': details or {},
        }
    }


def service_operation(action: str):
    """
    Decorator converting raised exceptions into failure results.

    Args:
        action: Human readable operation name, used in the SYSTEM_ERROR message
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except BusinessException as e:
                logger.warning(f"Could not {action}: [{e.code}] {e.message}")
                return failure(e.code, e.message, e.details)
            except Exception:
                logger.exception(f"Failed to {action}")
                return failure(SYSTEM_ERROR, f"Failed to {action}")
        return wrapper
    return decorator
