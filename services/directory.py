from sqlalchemy.orm import Session

from models.resource import Resource, ResourceType, OperationalStatus
from services.errors import NotFoundError, ValidationError

# Operational states that make a resource ineligible for new bookings
INELIGIBLE_STATUSES = (OperationalStatus.SUSPENDED, OperationalStatus.OFFLINE)


def parse_resource_type(value) -> ResourceType:
    if isinstance(value, ResourceType):
        return value
    try:
        return ResourceType(value)
    except ValueError:
        raise ValidationError(f"Unknown resource type: {value}") from None


class ResourceDirectory:
    """Resource lookups by type and operational status.

    Booking overlap is not considered here; see
    AvailabilityEngine.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_candidates(self, resource_type, exclude_suspended: bool = True):
        resource_type = parse_resource_type(resource_type)
        query = self.db.query(Resource.id).filter(Resource.type == resource_type)
        if exclude_suspended:
            query = query.filter(Resource.operational_status.notin_(INELIGIBLE_STATUSES))
        rows = query.order_by(Resource.created_at, Resource.id).all()
        return [row.id for row in rows]

    def get(self, resource_id: int) -> Resource:
        resource = self.db.query(Resource).filter(Resource.id == resource_id).first()
        if not resource:
            raise NotFoundError(f"Resource {resource_id} not found")
        return resource

    @staticmethod
    def is_eligible(resource: Resource) -> bool:
        return resource.operational_status not in INELIGIBLE_STATUSES

    def lock_rows(self, resource_ids):
        # FOR UPDATE is dropped by dialects without row locks (SQLite)
        return (
            self.db.query(Resource)
            .filter(Resource.id.in_(sorted(resource_ids)))
            .order_by(Resource.id)
            .with_for_update()
            .all()
        )
