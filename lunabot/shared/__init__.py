"""Persistence layer: database pool, migrations, models, repositories."""
