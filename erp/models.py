# Import every model module so Base.metadata knows all tables
import erp.modules.auth.models  # noqa: F401
import erp.modules.company.models  # noqa: F401
import erp.modules.numbering.models  # noqa: F401
import erp.modules.customers.models  # noqa: F401
import erp.modules.inventory.models  # noqa: F401
import erp.modules.sales.models  # noqa: F401
import erp.modules.purchasing.models  # noqa: F401
import erp.modules.financial.models  # noqa: F401
import erp.modules.hr.models  # noqa: F401
import erp.modules.mailbox.models  # noqa: F401
import erp.modules.system_settings.models  # noqa: F401
