"""
Relational storage for the catalog: ORM models, repositories and the
pagination/sort filters used by list queries.
"""
