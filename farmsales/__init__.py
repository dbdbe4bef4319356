"""Farm sales-order lifecycle: security check, delivery billing, payments and returns."""

__version__ = "1.0.0"
