"""Typed failures raised by the shop services.

All of them derive from ``ValueError`` so callers that only care about
"the request was rejected" can keep catching that.
"""


class ShopError(ValueError):
    code = 'SHOP_ERROR'


class NotFoundError(ShopError):
    code = 'NOT_FOUND'


class InvalidStateError(ShopError):
    code = 'INVALID_STATE'


class InsufficientStockError(ShopError):
    code = 'INSUFFICIENT_STOCK'

    def __init__(self, part_id: str, requested: int, available: int) -> None:
        self.part_id = part_id
        self.requested = requested
        self.available = available
        super().__init__(f'Cannot remove {requested} items of part {part_id}. Only {available} in stock.')


class ValidationError(ShopError):
    code = 'VALIDATION_ERROR'
