from .catalog import PaymentInstrument, CatalogEntry
from .appointments import Appointment, AppointmentService
from .commandas import Commanda, CommandaItem, CommandaPayment
from .events import WorkflowEvent

__all__ = [
    'PaymentInstrument', 'CatalogEntry',
    'Appointment', 'AppointmentService',
    'Commanda', 'CommandaItem', 'CommandaPayment',
    'WorkflowEvent',
]
