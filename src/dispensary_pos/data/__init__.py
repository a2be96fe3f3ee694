"""Data subpackage - catalog loading and the shipped sample catalogs."""
