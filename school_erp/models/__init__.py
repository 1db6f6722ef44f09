# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme attendances.marked_by → users.id échouent
# avec NoReferencedTableError si user.py n'est pas chargé avant attendance.py.

from school_erp.models.user import User  # noqa: F401  (doit précéder student et attendance)
from school_erp.models.school_class import SchoolClass, Section  # noqa: F401
from school_erp.models.student import Student  # noqa: F401
from school_erp.models.attendance import Attendance  # noqa: F401
