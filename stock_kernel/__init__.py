"""
Stock Kernel

Material stock ledger for a print storefront:
- File measurement (PDF pages, raster images) in centimetres
- Material resolution against inventory and the preset catalog
- Length consumption against whole-unit rolls with a persisted remainder
- Idempotent order aggregate recompute charging only the length delta
"""

__version__ = "0.1.0"
