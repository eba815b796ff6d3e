"""Domain-specific exceptions for the invoicing engine"""


class InvoicingException(Exception):
    """Base exception for invoicing domain errors"""

    code = "INVOICING_ERROR"


class ConfigurationError(InvoicingException):
    """Account, asset or adjustment is not wired to a known billing entity"""

    code = "CONFIGURATION_ERROR"


class DataQualityError(InvoicingException):
    """Upstream record (cost line item, credit) is malformed"""

    code = "DATA_QUALITY_ERROR"


class NoSuitableContractIntervalError(InvoicingException):
    """No contract charge interval covers the requested date"""

    code = "NO_SUITABLE_CONTRACT_INTERVAL"


class CreditVersionConflictError(InvoicingException):
    """Credit was modified by someone else since it was read"""

    code = "CREDIT_VERSION_CONFLICT"

    def __init__(self, credit_id: str, version: int):
        super().__init__(
            f"credit {credit_id} was updated concurrently (expected version {version})"
        )
        self.credit_id = credit_id
        self.version = version
