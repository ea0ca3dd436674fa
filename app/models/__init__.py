from app.models.user import User, UserRole  # noqa: F401
from app.models.document import (  # noqa: F401
    Document,
    DocumentStatus,
    IngestionProcess,
    IngestionStatus,
)
