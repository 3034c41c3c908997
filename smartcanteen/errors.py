"""Domain exceptions. Routers translate these into HTTP errors."""


class CanteenError(Exception):
    """Base class for SmartCanteen errors."""


class ConfigurationError(CanteenError):
    """Required configuration is missing or invalid."""


class UnknownMenuItem(CanteenError):
    def __init__(self, item_id):
        super().__init__(f"Menu item {item_id!r} not found")
        self.item_id = item_id


class OrderNotFound(CanteenError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id!r} not found")
        self.order_id = order_id


class InvalidTransition(CanteenError):
    def __init__(self, order_id, current, requested):
        super().__init__(f"Order {order_id} cannot move from {current} to {requested}")
        self.order_id = order_id
        self.current = current
        self.requested = requested


class UnsupportedDocumentVersion(CanteenError):
    def __init__(self, name, version, supported):
        super().__init__(
            f"Document {name!r} has schema_version {version}, this build reads up to {supported}"
        )
        self.name = name
        self.version = version


class ForecastInProgress(CanteenError):
    def __init__(self, target_date):
        super().__init__(f"A forecast for {target_date} is already running")
        self.target_date = target_date


class ConcurrentUpdate(CanteenError):
    """Another writer committed one of these documents after we loaded it."""

    def __init__(self, *names):
        super().__init__(
            f"{', '.join(names)} changed by another request; nothing was written, reload and retry"
        )
        self.names = names
