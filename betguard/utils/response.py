from typing import Optional, TypeVar

from betguard.core.schemas import StandardResponse

T = TypeVar('T')


def success_response(data: Optional[T] = None, message: str = "Success") -> StandardResponse[T]:
    """Creates a standard successful response.

    Args:
        data: The main data payload (optional).
        message: A descriptive message (optional).

    Returns:
        A StandardResponse object.
    """
    return StandardResponse[T](success=True, message=message, data=data)
