"""
Shared module for common utilities used by the POS API and CLI.

STRUCTURE:
- shared.security: Authentication and authorization
  - auth.py: JWT verification, current_user_context, require_roles

- shared.infrastructure: Database and request tracing
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: X-Request-ID propagation

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Roles, OrderStatus, SessionStatus, enums

- shared.utils: Utilities
  - exceptions.py: Domain exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Roles, OrderStatus
    from shared.utils.exceptions import NotFoundError, ForbiddenError
"""
