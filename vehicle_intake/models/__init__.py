# Vehicle Intake: Database Models
# Import all models here for SQLAlchemy discovery

from vehicle_intake.models.incoming_vehicle import IncomingVehicle             # noqa
from vehicle_intake.models.order import Order, OrderVehicle, OrderTracker      # noqa
from vehicle_intake.models.accessory import Accessory                          # noqa
from vehicle_intake.models.automation_rule import AutomationRule               # noqa
from vehicle_intake.models.homologation_card import HomologationCard           # noqa
from vehicle_intake.models.kickoff_history import KickoffHistory               # noqa
from vehicle_intake.models.action_log import ActionLog                         # noqa
