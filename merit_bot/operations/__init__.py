"""
Operations Layer

Business workflows composed from the database and services layers.

Architecture:
- Database layer: Pure data access and CRUD operations
- Services layer: Computations and catalog management
- Operations layer: Multi-step workflows with ordering and failure rules
- Command layer: Discord integration and user interface

- GameFinalizationOperations: ends a game and records its achievements and merits
"""
