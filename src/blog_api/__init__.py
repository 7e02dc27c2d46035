"""
Blog API package.

Modules:
- config: environment-driven settings
- logging_config: root logger setup
- errors: typed service errors and their HTTP mapping
- db: PostgreSQL connection pooling, query helpers and the Postgres record store
- store: record store contract and the in-memory implementation
- auth_utils: password hashing, JWT issuing and the current-user dependency
- schemas: Pydantic models for the REST API
- services: credential, user and post ownership services
- main: FastAPI application factory and routes
"""
