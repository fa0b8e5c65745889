"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Mutation event is malformed; rejected before the ledger is touched"""

    pass


class TransientStoreError(DomainException):
    """Contention or timeout on the underlying store; the event can be retried"""

    pass


class InvariantViolation(DomainException):
    """A delta would drive a ledger field below zero (raised only in strict mode)"""

    def __init__(self, key, fields):
        self.key = key
        self.fields = list(fields)
        super().__init__(f"Delta would drive {', '.join(self.fields)} negative for {key}")


class ReportNotFoundError(DomainException):
    """Report does not exist in the report store"""

    pass


class ResolverAlreadyAssignedError(DomainException):
    """Resolver is already credited on this report"""

    pass


class ResolverNotAssignedError(DomainException):
    """Resolver is not credited on this report"""

    pass
