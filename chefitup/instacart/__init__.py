"""Instacart shopping list export."""
