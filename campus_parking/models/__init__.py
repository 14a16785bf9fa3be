# Campus Parking database models
# Import all models here for SQLAlchemy discovery

from campus_parking.models.zone import Zone                          # noqa
from campus_parking.models.booking import Booking, BookingViolation  # noqa
from campus_parking.models.event import Event                        # noqa
from campus_parking.models.notification import Notification          # noqa
from campus_parking.models.push_token import PushToken               # noqa
