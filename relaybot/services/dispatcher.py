from relaybot.services.models import Route, TransferDescriptor


def dispatch(descriptor: TransferDescriptor, threshold: int) -> Route:
    """Chunked only when a length is known and reaches the threshold."""
    length = descriptor.declared_length
    if length > 0 and length >= threshold:
        return Route.CHUNKED
    return Route.SINGLE_SHOT
