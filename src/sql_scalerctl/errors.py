"""
Exception types for sql-scalerctl
"""


class ScalerError(Exception):
    """Base class for all sql-scalerctl errors"""


class StateStoreError(ScalerError):
    """Reading or writing the persisted scaling state failed"""


class OperationQueryError(ScalerError):
    """The operation-status API failed or returned something unusable"""


class ScalingExecutionError(ScalerError):
    """The resize request was rejected or could not be submitted"""


class InvalidPayloadError(ScalerError):
    """An inbound scaling request could not be turned into an InstanceConfig"""
