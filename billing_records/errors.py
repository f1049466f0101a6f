"""
Exceptions raised by billing_records.

Local validation failures, unsupported association writes and remote
gateway failures each get their own type so callers can tell a bad
record apart from an unreachable gateway.
"""
from typing import Dict, List, Optional


class BillingRecordsError(Exception):
    """Base exception for billing_records errors"""
    pass


class ConfigurationError(BillingRecordsError):
    """Raised when the payment gateway is not configured"""
    pass


class RecordInvalid(BillingRecordsError):
    """Raised by the throwing persistence calls when a record fails validation"""
    
    def __init__(self, record=None, errors: Optional[Dict[str, List[str]]] = None):
        self.record = record
        self.errors = errors or {}
        messages = [
            f"{field} {message}" if field != "base" else message
            for field, field_messages in self.errors.items()
            for message in field_messages
        ]
        super().__init__(f"Validation failed: {', '.join(messages)}" if messages else "Validation failed")


class RecordDestroyed(BillingRecordsError):
    """Raised when persisting a record that has already been cancelled"""
    pass


class NotSupportedApiError(BillingRecordsError):
    """Raised when an association is asked to do something the gateway API cannot"""
    pass


class GatewayError(BillingRecordsError):
    """Raised when the payment gateway call fails"""
    
    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        self.http_status = http_status


class RecordNotFound(GatewayError):
    """Raised when the gateway has no record for the given id"""
    
    def __init__(self, message: str):
        super().__init__(message, http_status=404)
