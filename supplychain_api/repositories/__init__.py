"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area. Domain
mutators (inventory, warehouse zones, BI datasets) live here as single-statement
UPDATE ... RETURNING operations so concurrent webhook deliveries never lose updates.
"""
