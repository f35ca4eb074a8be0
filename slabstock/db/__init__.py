"""PostgreSQL access: batch inserts and the slab store."""
