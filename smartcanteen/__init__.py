"""SmartCanteen: menu, waste ledger, demand forecasting and kitchen plan service."""

__version__ = "1.0.0"
