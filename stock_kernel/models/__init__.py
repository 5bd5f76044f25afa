"""ORM models for the stock kernel."""

from stock_kernel.models.inventory import InventoryItem, MaterialRemainder
from stock_kernel.models.order import Attachment, Order
from stock_kernel.models.sequence import SequenceCounter

__all__ = [
    "InventoryItem",
    "MaterialRemainder",
    "Order",
    "Attachment",
    "SequenceCounter",
    "import_all_models",
]


def import_all_models() -> None:
    """Register every kernel table on Base.metadata.

    The imports above already did; this exists so callers outside the
    package have one explicit hook to call before ``create_all``.
    """
    import stock_kernel.models.inventory  # noqa: F401
    import stock_kernel.models.order  # noqa: F401
    import stock_kernel.models.sequence  # noqa: F401
