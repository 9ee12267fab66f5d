"""
Validation utilities
"""

import re
from datetime import datetime
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def validate_site_url(site_url: str) -> bool:
    """
    Validate a Search Console property (URL-prefix or sc-domain property)
    """
    if site_url.startswith("sc-domain:"):
        return validate_domain(site_url[len("sc-domain:"):])
    pattern = r'^https?://[a-zA-Z0-9\-\.]+\.[a-zA-Z]{2,}(:\d+)?(/.*)?$'
    return re.match(pattern, site_url) is not None


def validate_domain(domain: str) -> bool:
    """
    Validate domain name
    """
    pattern = r'^[a-zA-Z0-9\-\.]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, domain) is not None


def validate_date_format(date_string: str, format: str = "%Y-%m-%d") -> bool:
    """
    Validate date string format
    """
    if not isinstance(date_string, str):
        return False
    try:
        datetime.strptime(date_string, format)
        return True
    except ValueError:
        return False


def sanitize_string(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize string input
    """
    # Remove control characters
    sanitized = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', text)

    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
