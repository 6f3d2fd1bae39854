from .catalog import Company, Location, Product
from .inventory import InventoryRecord, StockMovement
from .sales import PosSale, PosSaleItem, InvoiceSequence

__all__ = [
    'Company', 'Location', 'Product',
    'InventoryRecord', 'StockMovement',
    'PosSale', 'PosSaleItem', 'InvoiceSequence',
]
