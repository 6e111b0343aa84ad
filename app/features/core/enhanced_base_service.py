"""Enhanced BaseService with tenant-scoped query patterns and utilities."""

from app.features.core.sqlalchemy_imports import *

T = TypeVar('T')


class BaseService(Generic[T]):
    """
    Base service for FastAPI/SQLAlchemy feature services.

    Provides:
    - Tenant-scoped query builders
    - Standardized lookups by primary key
    - Consistent logging and error handling with rollback

    Global access:
    - tenant_id="global" is converted to None
    - When tenant_id is None, NO tenant filter is applied (background
      workers and global admins see all tenants)
    """

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        self.db = db_session
        self.tenant_id = None if tenant_id == "global" else tenant_id
        self.logger = get_logger(self.__class__.__name__)
        self.is_global_admin = self.tenant_id is None

    # === QUERY BUILDERS ===

    def create_base_query(self, model_class: type[T]) -> Select:
        """
        Create base SELECT query with tenant filtering.

        Args:
            model_class: SQLAlchemy model class

        Returns:
            Select statement, filtered on tenant_id when the service is tenant-scoped
        """
        stmt = select(model_class)
        return self.apply_tenant_filter(stmt, model_class)

    def apply_tenant_filter(self, stmt, model_class: type[T]):
        """Add the WHERE tenant_id = ? clause to any statement on model_class."""
        if self.tenant_id is not None and hasattr(model_class, 'tenant_id'):
            stmt = stmt.where(model_class.tenant_id == self.tenant_id)
        return stmt

    # === CRUD OPERATIONS ===

    async def get_by_id(self, model_class: type[T], item_id: Any) -> Optional[T]:
        """Get item by ID within the tenant scope."""
        try:
            stmt = self.create_base_query(model_class).where(model_class.id == item_id)
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get item by ID",
                            model=model_class.__name__, item_id=item_id, error=str(e))
            raise

    # === LOGGING & ERROR HANDLING ===

    def log_operation(self, operation: str, details: Dict[str, Any] = None):
        """Standardized operation logging."""
        log_data = {
            "operation": operation,
            "service": self.__class__.__name__,
            "tenant_id": self.tenant_id or "global"
        }
        if details:
            log_data.update(details)

        self.logger.info("Service operation", **log_data)

    async def handle_error(self, operation: str, error: Exception, **context):
        """Standardized error handling with rollback."""
        await self.db.rollback()

        self.logger.error("Service operation failed",
                         operation=operation,
                         service=self.__class__.__name__,
                         tenant_id=self.tenant_id or "global",
                         error=str(error),
                         **context)
        raise error
