class PodLifetimeError(Exception):
    """Base error for the pod lifetime controller"""


class PodNotFound(PodLifetimeError):
    """Pod no longer exists in the cluster"""
    def __init__(self, key):
        super().__init__(f"Pod {key} not found")
        self.key = key


class LifetimeLabelError(PodLifetimeError, ValueError):
    """Lifetime label value is not a non-negative integer number of seconds"""
    def __init__(self, value):
        super().__init__(f"Invalid lifetime label value: {value!r}")
        self.value = value


class PodReadError(PodLifetimeError):
    def __init__(self, key, cause):
        super().__init__(f"Failed to read pod {key}: {cause}")
        self.key = key
        self.cause = cause


class PodListError(PodLifetimeError):
    def __init__(self, cause):
        super().__init__(f"Failed to list pods: {cause}")
        self.cause = cause


class PodDeleteError(PodLifetimeError):
    def __init__(self, key, cause):
        super().__init__(f"Failed to delete pod {key}: {cause}")
        self.key = key
        self.cause = cause


class ConfigurationError(PodLifetimeError):
    def __init__(self, message, errors=None):
        self.errors: list = list(errors or [])
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)
