"""Central registry for SQLAlchemy models.

Importing this module loads every ORM class so metadata and string-based
relationships are complete regardless of which domain module is imported first.
"""

from funnel_crm.domain.quiz import db_models as quiz_db_models  # noqa: F401
from funnel_crm.domain.affiliates import db_models as affiliate_db_models  # noqa: F401
from funnel_crm.domain.closers import db_models as closer_db_models  # noqa: F401
