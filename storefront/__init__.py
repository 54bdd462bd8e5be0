"""Backend storefront: panier, checkout, paiements Paystack et commandes."""

__version__ = "0.1.0"
