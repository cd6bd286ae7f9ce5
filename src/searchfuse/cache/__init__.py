"""Result-set caching."""
