class BrokerError(Exception):
    """A call to the job broker failed; the caller must handle it."""


class BrokerConfigError(BrokerError):
    pass


class EnqueueError(BrokerError):
    pass


class ScheduleError(BrokerError):
    pass


class InvalidScheduleError(ValueError):
    pass


class InvalidSignatureError(Exception):
    pass
