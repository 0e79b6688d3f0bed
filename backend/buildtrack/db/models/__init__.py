# import all models for Alembic
from buildtrack.db.models.project import Project
from buildtrack.db.models.phase import Phase
from buildtrack.db.models.floor import Floor, FloorAllocation
from buildtrack.db.models.procurement import MaterialRequest, PurchaseOrder
from buildtrack.db.models.costs import (
    Material,
    Expense,
    LabourEntry,
    Equipment,
    Subcontractor,
    ProfessionalService,
    ProfessionalFee,
)
