from .inventory import Product, Stock, StockAdjustment, STOCK_ADJUSTMENT_TYPES, MANUAL_ADJUSTMENT_TYPES
from .sales import (
    Sale,
    SaleItem,
    PAYMENT_METHODS,
    REVERSAL_RECEIPT_PREFIX,
    format_reversal_receipt_number,
    parse_reversed_sale_id,
)

__all__ = [
    'Product', 'Stock', 'StockAdjustment',
    'STOCK_ADJUSTMENT_TYPES', 'MANUAL_ADJUSTMENT_TYPES',
    'Sale', 'SaleItem', 'PAYMENT_METHODS', 'REVERSAL_RECEIPT_PREFIX',
    'format_reversal_receipt_number', 'parse_reversed_sale_id',
]
