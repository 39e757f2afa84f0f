"""
Tiers - static catalog of purchasable membership tiers.

No models; the catalog lives in code and is loaded once at import.
"""
